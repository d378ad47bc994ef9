# backend/scoring/ocr.py
from typing import List, Tuple

import pytesseract
from PIL import Image, ImageFilter, ImageOps

from .conf import ocr_langs, ocr_max_dimension
from .utils import find_section, norm

# Page segmentation modes that suit labels:
# 6 single uniform block, 11 sparse text, 4 single column of variable sizes
PSM_CANDIDATES: List[int] = [6, 11, 4]

INGREDIENT_START_KEYS = ["ingrédients", "ingredients", "ingredient", "composition", "inci", "contains"]
INGREDIENT_END_KEYS = [
    "allergen", "allergènes", "nutrition", "valeurs nutritionnelles", "valeur énergétique",
    "conserver", "storage", "à consommer", "best before", "mode d'emploi", "directions",
    "precautions", "précautions", "fabriqué", "manufactured", "net weight", "poids net",
]


def downscale_if_huge(img: Image.Image, max_dimension: int = 0) -> Image.Image:
    """Prevent huge uploads from causing timeouts/memory spikes."""
    limit = max_dimension or ocr_max_dimension()
    w, h = img.size
    if max(w, h) <= limit:
        return img
    scale = limit / float(max(w, h))
    return img.resize((int(w * scale), int(h * scale)), Image.BICUBIC)


def preprocess(img: Image.Image) -> Image.Image:
    # orientation → grayscale → upscale small scans → sharpen → binarize
    img = ImageOps.exif_transpose(img)
    g = img.convert("L")
    if min(g.size) < 900:
        scale = 1200.0 / min(g.size)
        g = g.resize((int(g.width * scale), int(g.height * scale)), Image.BICUBIC)
    g = g.filter(ImageFilter.UnsharpMask(radius=1.2, percent=150, threshold=3))
    return g.point(lambda p: 255 if p > 180 else 0)


def run_tesseract(img: Image.Image, psm: int, langs: str) -> Tuple[str, float]:
    """Returns (text, mean word confidence 0..100)."""
    data = pytesseract.image_to_data(img, config=f"--oem 3 --psm {psm} -l {langs}",
                                     output_type=pytesseract.Output.DICT)
    words = [w for w in data["text"] if w.strip()]
    confs = [float(c) for c in data["conf"] if float(c) >= 0]
    avg = sum(confs) / len(confs) if confs else 0.0
    return " ".join(words), avg


def extract_text(img: Image.Image) -> str:
    """OCR a label with several page segmentation modes; the best mean confidence wins."""
    langs = ocr_langs()
    proc = preprocess(downscale_if_huge(img))

    best_text, best_conf = "", -1.0
    for psm in PSM_CANDIDATES:
        text, conf = run_tesseract(proc, psm, langs)
        if conf > best_conf:
            best_conf, best_text = conf, text

    cleaned = (
        best_text.replace("•", ",")
                 .replace("|", "I")
                 .replace("“", '"')
                 .replace("”", '"')
    )
    return norm(cleaned)


def extract_ingredients_text(img: Image.Image) -> str:
    """Ingredient section of a label image, or the whole OCR text when no section header is found."""
    text = extract_text(img)
    return find_section(text, INGREDIENT_START_KEYS, INGREDIENT_END_KEYS) or text
