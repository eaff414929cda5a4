from flask import Blueprint

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """Health check"""
    return {"status": "ok", "version": "1.0.0"}, 200
