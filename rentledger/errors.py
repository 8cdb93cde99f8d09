from flask import current_app, jsonify, request

from .ledger.errors import LedgerError


def register_error_handlers(app):
    @app.errorhandler(LedgerError)
    def ledger_error(e):
        if e.status_code >= 409:
            current_app.logger.warning("%s on %s: %s", e.code, request.path, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(400)
    def bad_request(e):
        msg = getattr(e, "description", "Bad Request")
        return jsonify(error="bad_request", message=msg), 400

    @app.errorhandler(403)
    def forbidden(e): return jsonify(error="forbidden"), 403

    @app.errorhandler(404)
    def not_found(e): return jsonify(error="not_found", path=request.path), 404

    @app.errorhandler(405)
    def method_not_allowed(e): return jsonify(error="method_not_allowed"), 405

    @app.errorhandler(500)
    def server_error(e):
        current_app.logger.exception("Unhandled exception: %s", e)
        return jsonify(error="server_error"), 500
