"""
items.py — Static item catalog (OpenDota purchase_log key <-> numeric id).

Only items worth a timing goal are catalogued: no recipes, consumables or
basic components. Purchases of anything else are ignored during ingestion.
IDs follow https://github.com/odota/dotaconstants/blob/master/build/items.json
"""

from typing import Optional

from pydantic import BaseModel


class CatalogItem(BaseModel):
    id: int
    name: str
    display_name: str


# key -> (id, display name)
ITEMS: dict[str, tuple[int, str]] = {
    "blink": (1, "Blink Dagger"),
    "magic_wand": (36, "Magic Wand"),
    "ghost": (37, "Ghost Scepter"),
    "bottle": (41, "Bottle"),
    "travel_boots": (48, "Boots of Travel"),
    "phase_boots": (50, "Phase Boots"),
    "power_treads": (63, "Power Treads"),
    "hand_of_midas": (65, "Hand of Midas"),
    "oblivion_staff": (67, "Oblivion Staff"),
    "pers": (69, "Perseverance"),
    "poor_mans_shield": (71, "Poor Man's Shield"),
    "bracer": (73, "Bracer"),
    "wraith_band": (75, "Wraith Band"),
    "null_talisman": (77, "Null Talisman"),
    "mekansm": (79, "Mekansm"),
    "vladmir": (81, "Vladmir's Offering"),
    "buckler": (86, "Buckler"),
    "ring_of_basilius": (88, "Ring of Basilius"),
    "pipe": (90, "Pipe of Insight"),
    "urn_of_shadows": (92, "Urn of Shadows"),
    "headdress": (94, "Headdress"),
    "sheepstick": (96, "Scythe of Vyse"),
    "orchid": (98, "Orchid Malevolence"),
    "cyclone": (100, "Eul's Scepter of Divinity"),
    "force_staff": (102, "Force Staff"),
    "dagon": (104, "Dagon"),
    "necronomicon": (106, "Necronomicon"),
    "ultimate_scepter": (108, "Aghanim's Scepter"),
    "refresher": (110, "Refresher Orb"),
    "assault": (112, "Assault Cuirass"),
    "heart": (114, "Heart of Tarrasque"),
    "black_king_bar": (116, "Black King Bar"),
    "shivas_guard": (119, "Shiva's Guard"),
    "bloodstone": (121, "Bloodstone"),
    "sphere": (123, "Linken's Sphere"),
    "vanguard": (125, "Vanguard"),
    "blade_mail": (127, "Blade Mail"),
    "soul_booster": (129, "Soul Booster"),
    "hood_of_defiance": (131, "Hood of Defiance"),
    "rapier": (133, "Divine Rapier"),
    "monkey_king_bar": (135, "Monkey King Bar"),
    "radiance": (137, "Radiance"),
    "butterfly": (139, "Butterfly"),
    "greater_crit": (141, "Daedalus"),
    "basher": (143, "Skull Basher"),
    "bfury": (145, "Battle Fury"),
    "manta": (147, "Manta Style"),
    "lesser_crit": (149, "Crystalys"),
    "armlet": (151, "Armlet of Mordiggian"),
    "invis_sword": (152, "Shadow Blade"),
    "sange_and_yasha": (154, "Sange and Yasha"),
    "satanic": (156, "Satanic"),
    "mjollnir": (158, "Mjollnir"),
    "skadi": (160, "Eye of Skadi"),
    "sange": (162, "Sange"),
    "helm_of_the_dominator": (164, "Helm of the Dominator"),
    "maelstrom": (166, "Maelstrom"),
    "desolator": (168, "Desolator"),
    "yasha": (170, "Yasha"),
    "mask_of_madness": (172, "Mask of Madness"),
    "diffusal_blade": (174, "Diffusal Blade"),
    "ethereal_blade": (176, "Ethereal Blade"),
    "soul_ring": (178, "Soul Ring"),
    "arcane_boots": (180, "Arcane Boots"),
    "ancient_janggo": (185, "Drum of Endurance"),
    "medallion_of_courage": (187, "Medallion of Courage"),
    "veil_of_discord": (190, "Veil of Discord"),
    "guardian_greaves": (192, "Guardian Greaves"),
    "rod_of_atos": (194, "Rod of Atos"),
    "abyssal_blade": (196, "Abyssal Blade"),
    "heavens_halberd": (198, "Heaven's Halberd"),
    "tranquil_boots": (202, "Tranquil Boots"),
    "glimmer_cape": (205, "Glimmer Cape"),
    "silver_edge": (233, "Silver Edge"),
    "solar_crest": (235, "Solar Crest"),
    "octarine_core": (237, "Octarine Core"),
    "lotus_orb": (239, "Lotus Orb"),
    "infused_raindrop": (265, "Infused Raindrop"),
    "aeon_disk": (298, "Aeon Disk"),
    "kaya": (300, "Kaya"),
    "bloodthorn": (306, "Bloodthorn"),
    "hurricane_pike": (308, "Hurricane Pike"),
    "spirit_vessel": (335, "Spirit Vessel"),
    "kaya_and_sange": (345, "Kaya and Sange"),
    "yasha_and_kaya": (347, "Yasha and Kaya"),
    "crimson_guard": (371, "Crimson Guard"),
    "aghanims_shard": (609, "Aghanim's Shard"),
}

# Community names accepted by get_item_id()
ALIASES: dict[str, str] = {
    "bkb": "black_king_bar",
    "battlefury": "bfury",
    "daedalus": "greater_crit",
    "mkb": "monkey_king_bar",
    "ac": "assault",
    "aghs": "ultimate_scepter",
    "sny": "sange_and_yasha",
    "linkens_sphere": "sphere",
    "shadow_blade": "invis_sword",
    "drums_of_endurance": "ancient_janggo",
}

_ID_TO_KEY: dict[int, str] = {item_id: key for key, (item_id, _) in ITEMS.items()}


def get_item_id(key: str) -> Optional[int]:
    entry = ITEMS.get(ALIASES.get(key, key))
    return entry[0] if entry else None


def get_item_name(item_id: int) -> Optional[str]:
    return _ID_TO_KEY.get(item_id)


def get_all_items() -> list[CatalogItem]:
    """Every catalogued item, sorted by display name."""
    items = [
        CatalogItem(id=item_id, name=key, display_name=display)
        for key, (item_id, display) in ITEMS.items()
    ]
    return sorted(items, key=lambda i: i.display_name)
