"""Crée un catalogue, des photos et une config de démonstration pour menuimport."""

import json
from pathlib import Path

import pandas as pd
from PIL import Image, ImageDraw

DATA_DIR = Path(__file__).parent / "data"
IMAGES_DIR = DATA_DIR / "images"
IMAGES_DIR.mkdir(parents=True, exist_ok=True)

catalog = pd.DataFrame({
    "menu_code": ["P011", "P012", "R001", "R002", "D001"],
    "name_en": ["Ten Zaru Udon", "Kake Udon", "Salmon Don", "Salmon Don", "Matcha Ice Cream"],
    "category_code": ["NOODLE", "NOODLE", "RICE", "RICE", "DESSERT"],
})
catalog.to_excel(DATA_DIR / "catalog.xlsx", index=False, engine="openpyxl")

# Un plat coloré sur fond blanc, décalé pour laisser des marges
photos = {
    "P011 Ten Zaru Udon.jpg": (200, 120, 40),
    "Kake Udonn.jpg": (220, 180, 90),
    "Salmon Don.png": (240, 110, 80),
    "Unknown Dish.jpg": (60, 160, 60),
}
for name, color in photos.items():
    img = Image.new("RGB", (1600, 1200), (255, 255, 255))
    ImageDraw.Draw(img).ellipse((500, 300, 1500, 1150), fill=color)
    img.save(IMAGES_DIR / name)

config = {"catalog_file": "catalog.xlsx", "output_format": "WEBP", "quality": 80}
(DATA_DIR / "config.json").write_text(json.dumps(config, indent=2), encoding="utf-8")
print(f"Fichiers créés dans {DATA_DIR}")
