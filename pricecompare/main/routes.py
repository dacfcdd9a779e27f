from flask import jsonify

from . import main_bp
from ..compare.categories import catalog


@main_bp.get("/")
def index():
    return jsonify({"categories": catalog()})


@main_bp.get("/health")
def health():
    return jsonify({"status": "ok"})
