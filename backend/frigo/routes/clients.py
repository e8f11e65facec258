# Overview: Flask API routes for clients; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import audit_service, client_service
from ..decorators import require_auth, require_permission
from .errors import DOMAIN_ERRORS, json_error


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("/")
@clients_bp.get("")
@require_auth
@require_permission("VIEW_CLIENTS")
def list_clients_route():
    """List clients. Query param q searches name, email, phone and company."""
    clients = client_service.list_clients(g.tenant_id, search=request.args.get("q"))
    return jsonify({"clients": [c.to_dict() for c in clients], "count": len(clients)})


@clients_bp.post("/")
@clients_bp.post("")
@require_auth
@require_permission("MANAGE_CLIENTS")
def create_client_route():
    try:
        client = client_service.create_client(
            g.tenant_id, request.get_json(silent=True), user_id=g.current_user.id
        )
        audit_service.log_create("client", client.id, {"name": client.name})
        return jsonify({"client": client.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/<int:client_id>")
@require_auth
@require_permission("VIEW_CLIENTS")
def get_client_route(client_id: int):
    try:
        client = client_service.get_client(g.tenant_id, client_id)
        return jsonify({"client": client.to_dict()})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@clients_bp.patch("/<int:client_id>")
@clients_bp.put("/<int:client_id>")
@require_auth
@require_permission("MANAGE_CLIENTS")
def update_client_route(client_id: int):
    try:
        data = request.get_json(silent=True) or {}
        client = client_service.update_client(g.tenant_id, client_id, data, user_id=g.current_user.id)
        audit_service.log_update("client", client.id, {"fields": sorted(data)})
        return jsonify({"client": client.to_dict()})

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.delete("/<int:client_id>")
@require_auth
@require_permission("MANAGE_CLIENTS")
def delete_client_route(client_id: int):
    try:
        client_service.delete_client(g.tenant_id, client_id)
        audit_service.log_delete("client", client_id)
        return jsonify({"message": "Client deleted"})

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/<int:client_id>/stats")
@require_auth
@require_permission("VIEW_CLIENTS")
def client_stats_route(client_id: int):
    try:
        return jsonify({"stats": client_service.client_stats(g.tenant_id, client_id)})
    except DOMAIN_ERRORS as e:
        return json_error(e)
