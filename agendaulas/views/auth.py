from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash

from ..models import Usuario

auth_bp = Blueprint("auth", __name__)


def _credentials() -> tuple[str, str]:
    payload = request.get_json(silent=True) or request.form
    email = (payload.get("email") or "").strip().lower()
    senha = payload.get("senha") or ""
    return email, senha


@auth_bp.post("/login")
def login_post():
    email, senha = _credentials()

    if not email or not senha:
        return jsonify({"ok": False, "message": "Informe email e senha."}), 400

    usuario = Usuario.query.filter_by(email=email).first()
    if usuario is None or not check_password_hash(usuario.senha_hash, senha):
        return jsonify({"ok": False, "message": "Email ou senha inválidos."}), 401

    login_user(usuario)
    return jsonify({"ok": True, "data": {"id": usuario.id, "nome": usuario.nome, "papel": usuario.papel}})


@auth_bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(
        {"ok": True, "data": {"id": current_user.id, "nome": current_user.nome, "papel": current_user.papel}}
    )
