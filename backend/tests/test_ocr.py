import pytesseract
from PIL import Image

from scoring import ocr

LABEL_WORDS = ["Ingrédients:", "farine", "de", "blé,", "sucre,", "sel.", "Conserver", "au", "sec"]


def fake_image_to_data(img, config="", output_type=None):
    # sparse-text mode reads the label best
    if "--psm 11" in config:
        return {"text": LABEL_WORDS, "conf": [91] * len(LABEL_WORDS)}
    return {"text": ["lngr3d", "", "farme"], "conf": [40, -1, 35]}


def test_best_page_segmentation_mode_wins(monkeypatch):
    monkeypatch.setattr(pytesseract, "image_to_data", fake_image_to_data)
    text = ocr.extract_text(Image.new("RGB", (400, 300), "white"))
    assert text == "Ingrédients: farine de blé, sucre, sel. Conserver au sec"


def test_ingredient_section_is_extracted(monkeypatch):
    monkeypatch.setattr(pytesseract, "image_to_data", fake_image_to_data)
    assert ocr.extract_ingredients_text(Image.new("RGB", (400, 300), "white")) == "farine de blé, sucre, sel"


def test_run_tesseract_ignores_empty_words(monkeypatch):
    monkeypatch.setattr(pytesseract, "image_to_data", fake_image_to_data)
    text, conf = ocr.run_tesseract(Image.new("L", (10, 10)), 6, "eng")
    assert text == "lngr3d farme"
    assert conf == 37.5


def test_huge_images_are_downscaled():
    img = Image.new("RGB", (4400, 1000))
    assert ocr.downscale_if_huge(img, max_dimension=2200).size == (2200, 500)
    small = Image.new("RGB", (100, 100))
    assert ocr.downscale_if_huge(small, max_dimension=2200) is small


def test_preprocess_binarizes_and_upscales():
    out = ocr.preprocess(Image.new("RGB", (300, 200), "white"))
    assert out.mode == "L"
    assert min(out.size) >= 900
    assert set(out.getdata()) <= {0, 255}
