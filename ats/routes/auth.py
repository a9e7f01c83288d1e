from __future__ import annotations

from flask import Blueprint

from ats.routes.api import body_with, run_action

auth_bp = Blueprint("auth", __name__)


@auth_bp.post("/organizations")
def create_organization():
    return run_action("ORG_CREATE", body_with())


@auth_bp.post("/signup")
def signup():
    return run_action("SIGNUP", body_with())


@auth_bp.post("/login")
def login():
    return run_action("LOGIN", body_with())


@auth_bp.get("/me")
def me():
    return run_action("GET_ME", {})


@auth_bp.post("/users")
def create_user():
    return run_action("USER_CREATE", body_with())


@auth_bp.get("/recruiters")
def recruiters():
    return run_action("RECRUITERS_LIST", {})
