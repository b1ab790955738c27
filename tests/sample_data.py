"""Small JHU-shaped tables: 3 dates, 2 global regions, 3 US counties in 2 states."""

GLOBAL_CASES = """Province/State,Country/Region,Lat,Long,1/22/20,1/23/20,1/24/20
,Alpha,1.0,2.0,0,1,2
North,Beta,3.0,4.0,5,5,6
"""

GLOBAL_DEATHS = """Province/State,Country/Region,Lat,Long,1/22/20,1/23/20,1/24/20
,Alpha,1.0,2.0,0,0,0
North,Beta,3.0,4.0,0,0,0
"""

US_CASES = """UID,iso2,iso3,code3,FIPS,Admin2,Province_State,Country_Region,Lat,Long_,Combined_Key,1/22/20,1/23/20,1/24/20
1,US,USA,840,1001.0,A1,Alpha State,US,0,0,"A1, Alpha State, US",1,3,6
2,US,USA,840,1002.0,A2,Alpha State,US,0,0,"A2, Alpha State, US",2,2,-1
3,US,USA,840,2001.0,B1,Beta State,US,0,0,"B1, Beta State, US",0,4,9
"""

US_DEATHS = """UID,iso2,iso3,code3,FIPS,Admin2,Province_State,Country_Region,Lat,Long_,Combined_Key,Population,1/22/20,1/23/20,1/24/20
1,US,USA,840,1001.0,A1,Alpha State,US,0,0,"A1, Alpha State, US",100,0,1,1
2,US,USA,840,1002.0,A2,Alpha State,US,0,0,"A2, Alpha State, US",300,0,2,2
3,US,USA,840,2001.0,B1,Beta State,US,0,0,"B1, Beta State, US",0,0,0,1
"""

LOOKUP = """UID,iso2,iso3,code3,FIPS,Admin2,Province_State,Country_Region,Lat,Long_,Combined_Key,Population
4,AA,AAA,4,,,,Alpha,1,2,Alpha,1000
5,BB,BBB,5,,,North,Beta,3,4,"North, Beta",2000
840,US,USA,840,,,,US,,,US,329466283
84001001,US,USA,840,1001.0,Autauga,Alabama,US,,,"Autauga, Alabama, US",55869
"""

SOURCE_TEXT = {
    "global_cases": GLOBAL_CASES,
    "global_deaths": GLOBAL_DEATHS,
    "us_cases": US_CASES,
    "us_deaths": US_DEATHS,
    "lookup": LOOKUP,
}
