"""Reference tables for the WSF passenger network.

Terminal abbreviations, the names under which the WSF history feed reports
terminals, vessel abbreviations, and the observed mean at-dock duration per
route pair. Wrapped by ``ferrywatch.utils.terminals.TerminalLookup``; nothing
else should import these dicts directly.
"""

# The 20 passenger terminals with scheduled service.
VALID_TERMINALS: frozenset[str] = frozenset({
    "ANA", "BBI", "BRE", "CLI", "COU", "EDM", "FAU", "FRH", "KIN", "LOP",
    "MUK", "ORI", "P52", "POT", "PTD", "SHI", "SID", "SOU", "TAH", "VAI",
})

# Terminal names as they appear in VesselHistory records.
TERMINAL_NAME_TO_ABBREV: dict[str, str] = {
    # Puget Sound
    "Bainbridge": "BBI",
    "Bainbridge Island": "BBI",
    "Bremerton": "BRE",
    "Kingston": "KIN",
    "Edmonds": "EDM",
    "Mukilteo": "MUK",
    "Clinton": "CLI",
    "Fauntleroy": "FAU",
    "Vashon": "VAI",
    "Vashon Island": "VAI",
    "Colman": "P52",
    "Seattle": "P52",
    "Southworth": "SOU",
    "Pt. Defiance": "PTD",
    "Point Defiance": "PTD",
    "Tahlequah": "TAH",
    # San Juan Islands
    "Anacortes": "ANA",
    "Friday": "FRH",
    "Friday Harbor": "FRH",
    "Shaw": "SHI",
    "Shaw Island": "SHI",
    "Orcas": "ORI",
    "Orcas Island": "ORI",
    "Lopez": "LOP",
    "Lopez Island": "LOP",
    "Sidney B.C.": "SID",
    # Port Townsend / Coupeville
    "Port Townsend": "POT",
    "Keystone": "COU",
    "Coupeville": "COU",
}

VESSEL_NAME_TO_ABBREV: dict[str, str] = {
    "Cathlamet": "CAT",
    "Chelan": "CHE",
    "Chetzemoka": "CHZ",
    "Chimacum": "CHM",
    "Hiyu": "HIY",
    "Issaquah": "ISS",
    "Kaleetan": "KAL",
    "Kennewick": "KEN",
    "Kitsap": "KIS",
    "Kittitas": "KIT",
    "Puyallup": "PUY",
    "Salish": "SAL",
    "Samish": "SAM",
    "Sealth": "SEA",
    "Spokane": "SPO",
    "Suquamish": "SUQ",
    "Tacoma": "TAC",
    "Tillikum": "TIL",
    "Tokitae": "TOK",
    "Walla Walla": "WAL",
    "Wenatchee": "WEN",
    "Yakima": "YAK",
}

# Mean at-dock minutes keyed "DEP->ARR", from historical WSF sailings.
MEAN_AT_DOCK_MINUTES: dict[str, float] = {
    "ANA->FRH": 26.74,
    "ANA->LOP": 26.65,
    "ANA->ORI": 26.33,
    "ANA->SHI": 23.2,
    "BBI->P52": 18.5,
    "BRE->P52": 18.55,
    "CLI->MUK": 16.38,
    "COU->POT": 17.94,
    "EDM->KIN": 23.94,
    "FAU->SOU": 15.99,
    "FAU->VAI": 15.42,
    "FRH->ANA": 26.28,
    "FRH->LOP": 27.22,
    "FRH->ORI": 23.39,
    "FRH->SHI": 20.82,
    "KIN->EDM": 24.18,
    "LOP->ANA": 12.63,
    "LOP->FRH": 10.02,
    "LOP->ORI": 12.87,
    "LOP->SHI": 10.7,
    "MUK->CLI": 15.4,
    "ORI->ANA": 19.52,
    "ORI->FRH": 12.09,
    "ORI->LOP": 20.88,
    "ORI->SHI": 21.99,
    "P52->BBI": 21.17,
    "P52->BRE": 18.93,
    "POT->COU": 21.07,
    "PTD->TAH": 17.39,
    "SHI->ANA": 6.23,
    "SHI->LOP": 6.2,
    "SHI->ORI": 6.76,
    "SOU->FAU": 10.55,
    "SOU->VAI": 14.67,
    "TAH->PTD": 13.68,
    "VAI->FAU": 14.12,
    "VAI->SOU": 10.99,
}
