# backend/scoring/lexicons.py
"""
Static reference data: additive risk tables, ingredient lexicons, hazard
tables, processing methods and detector keywords.

Everything here is immutable and built once at import. Scoring functions
receive a ``LexiconSet`` argument (defaulting to ``DEFAULT_LEXICONS``) so
alternative tables can be injected without touching module state.
Terms are lowercase; labels are matched in both French and English.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Pattern, Tuple


class Lexicon:
    """Immutable term table matched as whole words inside a token.

    A trailing plural ``s``/``x`` is tolerated, longer terms win over the
    shorter terms they contain.
    """

    __slots__ = ("name", "_entries")

    def __init__(self, name: str, entries: Mapping[str, Any]):
        self.name = name
        ordered = sorted(entries.items(), key=lambda kv: (-len(kv[0]), kv[0]))
        self._entries: Tuple[Tuple[str, Any, Pattern[str]], ...] = tuple(
            (term, value, re.compile(r"(?<!\w)" + re.escape(term) + r"(?:s|x)?(?!\w)"))
            for term, value in ordered
        )

    def find(self, text: str) -> Optional[Tuple[str, Any]]:
        for term, value, rx in self._entries:
            if rx.search(text):
                return term, value
        return None

    def find_all(self, text: str) -> List[Tuple[str, Any]]:
        return [(term, value) for term, value, rx in self._entries if rx.search(text)]

    def __contains__(self, text: str) -> bool:
        return self.find(text) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Lexicon({self.name!r}, {len(self)} terms)"


# =========================
# -------- Additives ------
# =========================

ADDITIVE_NAMES: Mapping[str, str] = MappingProxyType({
    # Colours
    "E102": "Tartrazine",
    "E104": "Quinoline Yellow",
    "E110": "Sunset Yellow FCF",
    "E122": "Carmoisine",
    "E124": "Ponceau 4R",
    "E129": "Allura Red AC",
    "E131": "Patent Blue V",
    "E133": "Brilliant Blue FCF",
    "E150D": "Sulphite ammonia caramel",
    "E151": "Brilliant Black BN",
    # Preservatives
    "E200": "Sorbic acid",
    "E202": "Potassium sorbate",
    "E211": "Sodium benzoate",
    "E220": "Sulphur dioxide",
    "E221": "Sodium sulphite",
    "E222": "Sodium bisulphite",
    "E223": "Sodium metabisulphite",
    "E224": "Potassium metabisulphite",
    "E228": "Potassium bisulphite",
    "E249": "Potassium nitrite",
    "E250": "Sodium nitrite",
    "E251": "Sodium nitrate",
    "E252": "Potassium nitrate",
    # Antioxidants
    "E300": "Ascorbic acid",
    "E319": "Tertiary butylhydroquinone (TBHQ)",
    "E320": "Butylated hydroxyanisole (BHA)",
    "E321": "Butylated hydroxytoluene (BHT)",
    "E330": "Citric acid",
    # Phosphates, emulsifiers, thickeners
    "E338": "Phosphoric acid",
    "E339": "Sodium phosphates",
    "E340": "Potassium phosphates",
    "E341": "Calcium phosphates",
    "E407": "Carrageenan",
    "E412": "Guar gum",
    "E415": "Xanthan gum",
    "E450": "Diphosphates",
    "E451": "Triphosphates",
    "E452": "Polyphosphates",
    "E466": "Carboxymethyl cellulose",
    "E471": "Mono- and diglycerides of fatty acids",
    "E472A": "Acetic acid esters of mono- and diglycerides",
    "E472B": "Lactic acid esters of mono- and diglycerides",
    "E472C": "Citric acid esters of mono- and diglycerides",
    "E472E": "DATEM",
    "E473": "Sucrose esters of fatty acids",
    "E475": "Polyglycerol esters of fatty acids",
    # Flavour enhancers
    "E621": "Monosodium glutamate (MSG)",
    "E627": "Disodium guanylate",
    "E631": "Disodium inosinate",
    # Sweeteners
    "E950": "Acesulfame K",
    "E951": "Aspartame",
    "E952": "Cyclamates",
    "E954": "Saccharin",
    "E955": "Sucralose",
    "E960": "Steviol glycosides",
    "E961": "Neotame",
})

# Synthetic colours, nitrites/nitrates, sulphites and phenolic antioxidants
HIGH_RISK_ADDITIVES = frozenset({
    "E102", "E104", "E110", "E122", "E124", "E129", "E150D",
    "E220", "E221", "E222", "E223", "E224", "E228",
    "E249", "E250", "E251", "E252",
    "E319", "E320", "E321",
})

MEDIUM_RISK_ADDITIVES = frozenset({
    "E211", "E450", "E451", "E452", "E471", "E472A",
    "E950", "E951", "E952", "E954", "E955", "E961",
})


# =========================
# ------- Food terms ------
# =========================

INDUSTRIAL_TERMS = (
    # fr
    "sirop de glucose-fructose", "sirop de glucose", "sirop de fructose", "glucose-fructose",
    "sirop de maïs", "sucre inverti", "protéines hydrolysées", "protéine hydrolysée",
    "isolat de protéine", "isolat de protéines", "huile hydrogénée", "huiles hydrogénées",
    "huile partiellement hydrogénée", "graisse hydrogénée", "maltodextrine", "dextrose",
    "inuline", "arôme artificiel", "arômes artificiels", "arome artificiel", "huile de palme",
    "amidon modifié", "amidons modifiés", "exhausteur de goût",
    # en
    "high fructose corn syrup", "glucose-fructose syrup", "glucose syrup", "corn syrup",
    "invert sugar", "hydrolysed protein", "hydrolyzed protein", "protein isolate",
    "hydrogenated", "maltodextrin", "artificial flavour", "artificial flavor",
    "palm oil", "modified starch", "flavour enhancer", "flavor enhancer",
)

FOOD_NATURAL_TERMS = (
    # fr
    "eau", "fruit", "légume", "graine", "noix", "noisette", "amande", "viande", "poisson",
    "œuf", "oeuf", "lait", "yaourt nature", "fromage blanc", "légumineuse", "lentille",
    "pois chiche", "haricot", "céréales complètes", "farine complète", "avoine", "riz complet",
    "herbe", "épice", "tomate", "pomme", "carotte", "oignon", "ail", "huile d'olive", "beurre",
    # en
    "water", "vegetable", "seed", "nut", "meat", "fish", "egg", "milk", "plain yogurt",
    "legume", "lentil", "chickpea", "bean", "whole grain", "wholegrain", "oat", "brown rice",
    "herb", "spice", "tomato", "apple", "carrot", "onion", "garlic", "olive oil", "butter",
)

SUSPICIOUS_TERMS = (
    "arôme", "arome", "flavour", "flavor", "exhausteur", "enhancer",
    "stabilisant", "stabiliser", "stabilizer", "gélifiant", "gelling agent",
    "épaississant", "thickener", "émulsifiant", "emulsifier",
    "colorant", "colour", "color", "conservateur", "preservative",
)


# =========================
# ----- Cosmetic terms ----
# =========================

ENDOCRINE_DISRUPTORS = MappingProxyType({
    "butylparaben": "high",
    "propylparaben": "medium",
    "isobutylparaben": "high",
    "methylparaben": "low",
    "benzophenone-3": "high",
    "oxybenzone": "high",
    "ethylhexyl methoxycinnamate": "medium",
    "octinoxate": "medium",
    "triclosan": "high",
    "bht": "medium",
    "butylated hydroxytoluene": "medium",
    "bha": "high",
    "butylated hydroxyanisole": "high",
    "phenoxyethanol": "low",
    "methylisothiazolinone": "high",
    "dmdm hydantoin": "medium",
    "cyclopentasiloxane": "low",
    "cyclotetrasiloxane": "medium",
})

COSMETIC_ALLERGENS = MappingProxyType({
    "limonene": "high",
    "linalool": "high",
    "eugenol": "high",
    "isoeugenol": "high",
    "citronellol": "medium",
    "geraniol": "medium",
    "benzyl alcohol": "medium",
    "coumarin": "medium",
    "citral": "medium",
    "hexyl cinnamal": "medium",
    "cinnamal": "medium",
    "hydroxycitronellal": "medium",
    "benzyl benzoate": "low",
    "benzyl salicylate": "low",
    "farnesol": "low",
})

COSMETIC_NATURAL_TERMS = (
    "aqua", "water", "eau", "glycerin", "aloe barbadensis", "butyrospermum parkii", "shea butter",
    "cocos nucifera", "argania spinosa", "simmondsia chinensis", "helianthus annuus",
    "olea europaea", "prunus amygdalus dulcis", "rosa canina", "lavandula angustifolia",
    "chamomilla recutita", "calendula officinalis", "cera alba", "beeswax", "mel", "kaolin",
    "extract", "seed oil", "leaf juice", "flower water",
)

COSMETIC_BENEFICIAL_TERMS = (
    "hyaluronic acid", "sodium hyaluronate", "niacinamide", "panthenol", "allantoin",
    "tocopherol", "ceramide", "squalane", "bisabolol", "centella asiatica", "glycerin",
)


# =========================
# ---- Detergent terms ----
# =========================

# name -> (biodegradability %, aquatic toxicity 0-10)
SURFACTANTS = MappingProxyType({
    "sodium laureth sulfate": (85, 6),
    "sles": (85, 6),
    "sodium lauryl sulfate": (90, 7),
    "sls": (90, 7),
    "ammonium lauryl sulfate": (90, 6),
    "cocamidopropyl betaine": (95, 3),
    "sodium coco-sulfate": (98, 2),
    "sodium coco sulfate": (98, 2),
    "decyl glucoside": (100, 1),
    "lauryl glucoside": (100, 1),
    "coco glucoside": (100, 1),
    "alkyl polyglucoside": (100, 2),
    "sodium dodecylbenzenesulfonate": (95, 5),
    "linear alkylbenzene sulfonate": (95, 5),
    "alcohol ethoxylate": (90, 4),
    "c12-15 pareth-7": (90, 4),
})

# name -> (aquatic toxicity 0-10, severity)
AQUATIC_HAZARDS = MappingProxyType({
    "phosphate": (8, "high"),
    "phosphonate": (7, "high"),
    "phosphoric acid": (7, "high"),
    "edta": (6, "medium"),
    "tetrasodium edta": (6, "medium"),
    "nta": (5, "medium"),
    "optical brightener": (6, "medium"),
    "azurant optique": (6, "medium"),
    "benzisothiazolinone": (8, "high"),
    "methylisothiazolinone": (9, "high"),
    "formaldehyde": (9, "high"),
    "sodium hypochlorite": (8, "high"),
    "hypochlorite de sodium": (8, "high"),
    "chlorine": (8, "high"),
    "ammonia": (7, "high"),
    "ammoniaque": (7, "high"),
    "benzalkonium chloride": (7, "medium"),
    "quaternary ammonium": (7, "medium"),
    "triclosan": (9, "high"),
})

VOC_TERMS = (
    "limonene", "ethanol", "alcohol denat", "isopropanol", "isopropyl alcohol", "benzyl alcohol",
    "terpineol", "linalool", "citral", "eucalyptol", "menthol", "camphor", "pine oil",
    "orange oil", "lemon oil",
)

ECO_INGREDIENTS = (
    "sodium bicarbonate", "bicarbonate de soude", "citric acid", "acide citrique", "vinegar",
    "vinaigre", "sodium percarbonate", "percarbonate de soude", "sodium carbonate",
    "cristaux de soude", "savon de marseille", "soap nut", "lactic acid",
)

ECO_LABELS = (
    "eu ecolabel", "ecolabel", "ecocert", "nordic swan", "green seal", "cradle to cradle",
)


# =========================
# --- Processing methods --
# =========================

IMPACT_ORDER: Tuple[str, ...] = ("low", "medium", "high", "very_high", "extreme")


@dataclass(frozen=True)
class ProcessingMethod:
    name: str
    category: str  # mechanical | thermal | chemical | extraction | modification
    level: int
    impact: str
    pattern: Pattern[str] = field(compare=False)


def _method(name: str, category: str, level: int, impact: str, pattern: str) -> ProcessingMethod:
    return ProcessingMethod(name, category, level, impact, re.compile(pattern, re.I))


PROCESSING_METHODS: Tuple[ProcessingMethod, ...] = (
    _method("grinding", "mechanical", 1, "low", r"broy|\bground\b|grinding|moulu"),
    _method("cutting", "mechanical", 1, "low", r"d[ée]coup|\bcut\b|sliced|tranch"),
    _method("pressing", "mechanical", 1, "low", r"press[ée]|pressage|cold[- ]pressed"),
    _method("pasteurisation", "thermal", 2, "medium", r"pasteuri[sz]"),
    _method("sterilisation", "thermal", 3, "high", r"st[ée]rili[sz]"),
    _method("uht treatment", "thermal", 3, "high", r"\buht\b"),
    _method("frying", "thermal", 3, "high", r"\bfrit(?:e|es|s)?\b|friture|\bfried\b"),
    _method("hydrogenation", "chemical", 4, "very_high", r"hydrog[ée]n"),
    _method("hydrolysis", "chemical", 4, "very_high", r"hydroly[sz]"),
    _method("esterification", "chemical", 5, "extreme", r"est[ée]rifi|interesterif"),
    _method("refining", "extraction", 3, "high", r"raffin|\brefined\b"),
    _method("solvent extraction", "extraction", 4, "very_high", r"extraction (?:au |par )?solvant|solvent[- ]extract"),
    _method("concentration", "extraction", 2, "medium", r"concentr"),
    _method("extrusion", "modification", 4, "very_high", r"extrud|extrusion|souffl[ée]|puffed"),
    _method("texturisation", "modification", 4, "very_high", r"textur[ée]|texturi[sz]"),
    _method("spray drying", "modification", 3, "high", r"atomis|spray[- ]dried"),
)

# Methods implied by an ingredient even when the label names no process
IMPLICIT_METHODS: Tuple[ProcessingMethod, ...] = (
    _method("intensive refining", "extraction", 4, "very_high", r"huile de palme|palm oil|palmiste|palm kernel"),
    _method("enzymatic hydrolysis", "chemical", 4, "very_high",
            r"sirop de glucose|glucose[- ]fructose|glucose syrup|corn syrup"),
)

# (label, pattern, level)
INTENSITY_MARKERS: Tuple[Tuple[str, Pattern[str], int], ...] = tuple(
    (label, re.compile(rx, re.I), level) for label, rx, level in (
        ("glucose-fructose syrup", r"sirop de glucose|glucose[- ]fructose|glucose syrup|corn syrup", 4),
        ("maltodextrin", r"maltodextrin", 4),
        ("modified starch", r"amidons? modifi|modified (?:\w+ )?starch", 4),
        ("hydrolysed protein", r"prot[ée]ines? hydrolys|hydroly[sz]ed protein", 5),
        ("protein isolate", r"isolats? de prot[ée]ine|protein isolate", 4),
        ("hydrogenated oil", r"(?:huiles?|graisses?) (?:partiellement )?hydrog[ée]n|hydrogenated", 5),
        ("artificial flavour", r"ar[ôo]mes? artificiels?|artificial flavou?r", 4),
        ("synthetic sweetener", r"[ée]dulcorants? de synth|aspartame|sucralose|acesulfame|saccharin|cyclamate", 4),
    )
)

PROCESS_TERMS: Tuple[Tuple[str, Pattern[str], int], ...] = tuple(
    (label, re.compile(rx, re.I), level) for label, rx, level in (
        ("instant", r"instantan|\binstant\b", 3),
        ("reconstituted", r"reconstitu", 3),
        ("vitamin-enriched", r"enrichi(?:e|s|es)? en vitamines?|fortified|enriched with vitamins?", 2),
        ("long-life", r"longue conservation|long[- ]life", 3),
        ("freeze-dried", r"lyophilis|freeze[- ]dried", 3),
    )
)

ADDITIVE_MARKER_LEVEL = 3


# =========================
# --- Category keywords ---
# =========================

DETECTOR_KEYWORDS: Mapping[str, Mapping[str, Tuple[str, ...]]] = MappingProxyType({
    "food": MappingProxyType({
        "products": (
            "yaourt", "yogurt", "fromage", "cheese", "beurre", "crème fraîche", "pain", "bread",
            "biscuit", "gâteau", "cake", "céréales", "cereal", "muesli", "granola", "jus", "juice",
            "soda", "boisson", "drink", "thé", "café", "coffee", "sauce", "ketchup", "mayonnaise",
            "moutarde", "vinaigrette", "chocolat", "chocolate", "bonbon", "candy", "confiture", "jam",
            "miel", "honey", "pâtes", "pasta", "riz", "quinoa", "conserve", "pizza", "sandwich",
            "burger", "salade", "soupe", "soup", "jambon", "ham", "saucisse", "sausage", "snack",
        ),
        "categories": (
            "alimentaire", "nutrition", "sans gluten", "gluten free", "vegan", "végétarien",
            "apéritif", "dessert", "petit-déjeuner", "breakfast", "surgelé", "frozen", "épicerie",
            "boulangerie", "bakery",
        ),
        "ingredients": (
            "sucre", "sugar", "sel", "salt", "farine", "flour", "œuf", "oeuf", "huile", "vinaigre",
            "levure", "yeast", "vanille", "cacao", "cocoa", "lécithine", "amidon", "starch",
            "glucose", "fructose", "lactose", "protéine", "vitamine", "conservateur",
            "colorant", "arôme",
        ),
    }),
    "cosmetics": MappingProxyType({
        "products": (
            "crème", "cream", "lotion", "sérum", "serum", "baume", "balm", "shampoing", "shampoo",
            "après-shampoing", "conditioner", "masque", "fond de teint", "foundation", "rouge à lèvres",
            "lipstick", "mascara", "eye-liner", "parfum", "eau de toilette", "déodorant", "deodorant",
            "dentifrice", "toothpaste", "savon", "soap", "gel douche", "shower gel", "gommage", "scrub",
            "démaquillant", "tonique", "toner", "bb cream", "primer",
        ),
        "categories": (
            "cosmétique", "cosmetic", "beauté", "beauty", "soin", "skincare", "maquillage", "makeup",
            "visage", "face", "corps", "body", "cheveux", "hair", "anti-âge", "anti-aging",
            "hydratant", "moisturizing", "nourrissant", "purifiant",
        ),
        "ingredients": (
            "aqua", "glycerin", "dimethicone", "cetyl alcohol", "cetearyl alcohol",
            "butyrospermum parkii", "tocopherol", "retinol", "hyaluronic acid", "niacinamide",
            "salicylic acid", "panthenol", "allantoin", "bisabolol", "caffeine", "limonene",
            "linalool", "citronellol", "paraben", "sulfate", "silicone", "phenoxyethanol",
        ),
    }),
    "detergents": MappingProxyType({
        "products": (
            "lessive", "laundry", "détergent", "detergent", "liquide vaisselle", "dishwashing",
            "lave-vaisselle", "dishwasher", "nettoyant", "cleaner", "dégraissant", "degreaser",
            "désinfectant", "disinfectant", "javel", "bleach", "adoucissant", "assouplissant",
            "fabric softener", "détachant", "stain remover", "multi-surface", "vitres",
        ),
        "categories": (
            "ménager", "household", "entretien", "nettoyage", "cleaning", "lessiviel", "vaisselle",
            "maison", "concentré", "concentrated", "poudre", "tablette", "anti-calcaire",
            "anti-graisse", "antibactérien", "antibacterial",
        ),
        "ingredients": (
            "sodium lauryl sulfate", "sodium laureth sulfate", "coco glucoside", "lauryl glucoside",
            "decyl glucoside", "sodium bicarbonate", "citric acid", "sodium percarbonate",
            "protease", "amylase", "lipase", "cellulase", "phosphate", "zeolite", "polycarboxylate",
            "optical brightener", "benzalkonium chloride", "sodium hypochlorite", "hydrogen peroxide",
        ),
    }),
})

# (evidence label, pattern, points)
DETECTOR_PATTERNS: Mapping[str, Tuple[Tuple[str, Pattern[str], int], ...]] = MappingProxyType({
    "food": (
        ("nutrition facts", re.compile(
            r"\d+\s*(?:kcal|kj|calories|protéines|proteins?|glucides|carbohydrates|lipides|fibres|fibers?)", re.I), 25),
        ("additive codes", re.compile(r"\be\s?-?\d{3,4}[a-d]?\b", re.I), 20),
        ("food allergens", re.compile(r"gluten|arachide|peanut|soja|\bsoy\b|crustac|lactose", re.I), 15),
    ),
    "cosmetics": (
        ("cosmetic volume", re.compile(r"\d+\s*(?:ml|fl\.?\s?oz)\b", re.I), 15),
        ("beauty certifications", re.compile(r"cosmebio|natrue|cruelty.free|ecocert cosmos", re.I), 20),
    ),
    "detergents": (
        ("dosage instructions", re.compile(r"\bdoses?\b|lavages|\bwashes\b|\bcaps\b|\bdosage\b", re.I), 20),
        ("chemical properties", re.compile(r"\bph\b|alcalin|alkaline|biodégradable|biodegradable", re.I), 15),
        ("eco labels", re.compile(r"ecolabel|nordic swan|cradle to cradle", re.I), 25),
    ),
})


# =========================
# ------ Lexicon set ------
# =========================

@dataclass(frozen=True)
class LexiconSet:
    industrial: Lexicon
    food_natural: Lexicon
    suspicious: Lexicon
    endocrine: Lexicon
    allergens: Lexicon
    cosmetic_natural: Lexicon
    beneficial: Lexicon
    surfactants: Lexicon
    aquatic: Lexicon
    voc: Lexicon
    eco_ingredients: Lexicon
    eco_labels: Lexicon
    high_risk_additives: frozenset = HIGH_RISK_ADDITIVES
    medium_risk_additives: frozenset = MEDIUM_RISK_ADDITIVES
    additive_names: Mapping[str, str] = field(default_factory=lambda: ADDITIVE_NAMES)


def _flat(name: str, terms: Tuple[str, ...], value: Any = True) -> Lexicon:
    return Lexicon(name, {t: value for t in terms})


DEFAULT_LEXICONS = LexiconSet(
    industrial=_flat("industrial", INDUSTRIAL_TERMS, "high"),
    food_natural=_flat("food_natural", FOOD_NATURAL_TERMS, "low"),
    suspicious=_flat("suspicious", SUSPICIOUS_TERMS, "low"),
    endocrine=Lexicon("endocrine", ENDOCRINE_DISRUPTORS),
    allergens=Lexicon("allergens", COSMETIC_ALLERGENS),
    cosmetic_natural=_flat("cosmetic_natural", COSMETIC_NATURAL_TERMS, "low"),
    beneficial=_flat("beneficial", COSMETIC_BENEFICIAL_TERMS),
    surfactants=Lexicon("surfactants", SURFACTANTS),
    aquatic=Lexicon("aquatic", AQUATIC_HAZARDS),
    voc=_flat("voc", VOC_TERMS),
    eco_ingredients=_flat("eco_ingredients", ECO_INGREDIENTS),
    eco_labels=_flat("eco_labels", ECO_LABELS),
)
