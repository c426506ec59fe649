import io
import logging

from flask import Flask, jsonify, request, send_file
from flask_socketio import SocketIO
from werkzeug.utils import secure_filename

from coviewer import __version__, config
from coviewer.coordinator import SessionCoordinator
from coviewer.errors import CoViewerError
from coviewer.server import register_handlers, socketio_transport

logger = logging.getLogger(__name__)


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(config)
    if overrides:
        app.config.update(overrides)

    socketio = SocketIO(
        app,
        cors_allowed_origins=app.config["CORS_ALLOWED_ORIGINS"],
        async_mode=app.config["ASYNC_MODE"],
    )

    broadcast, send_to = socketio_transport(socketio)
    coordinator = SessionCoordinator(
        broadcast,
        send_to,
        admin_name=app.config["ADMIN_NAME"],
        admin_policy=app.config["ADMIN_POLICY"],
        max_document_bytes=app.config["MAX_DOCUMENT_BYTES"],
    )
    register_handlers(socketio, coordinator)
    app.extensions["coviewer"] = coordinator

    # ==========================================================
    # HEALTH
    # ==========================================================
    @app.route("/health")
    def health():
        return jsonify({
            "service": "coviewer",
            "version": __version__,
            "status": "healthy",
            "participants": coordinator.registry.count(),
        })

    # ==========================================================
    # CURRENT SESSION STATE (for polling clients)
    # ==========================================================
    @app.route("/state")
    def state():
        return jsonify(coordinator.status())

    # ==========================================================
    # DOWNLOAD THE CURRENT DOCUMENT
    # ==========================================================
    @app.route("/document")
    def document():
        snapshot = coordinator.store.snapshot()
        if snapshot.document is None:
            return jsonify({"success": False, "error": "No document loaded"}), 404

        return send_file(
            io.BytesIO(snapshot.document),
            mimetype="application/pdf",
            download_name=f"document-r{snapshot.revision}.pdf",
        )

    # ==========================================================
    # UPLOAD PDF ON BEHALF OF A CONNECTED ADMIN SOCKET
    # ==========================================================
    @app.route("/upload", methods=["POST"])
    def upload():
        file = request.files.get("pdf_file")
        if not file:
            return jsonify({"success": False, "error": "No PDF file received"}), 400

        connection_id = request.form.get("connection_id")
        try:
            snapshot = coordinator.upload_document(connection_id, file.read())
        except CoViewerError as e:
            status = 403 if e.code == "NotAuthorized" else 400
            return jsonify({"success": False, "error": e.code, "message": e.message}), status

        logger.info("Received %s over HTTP", secure_filename(file.filename or "") or "unnamed upload")
        return jsonify({"success": True, "revision": snapshot.revision})

    return app


# ONLY RUN IF DIRECTLY EXECUTED (not via gunicorn)
if __name__ == "__main__":
    app = create_app()
    logging.basicConfig(level=app.config["LOG_LEVEL"],
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    print(f"📄 Co-viewer listening on {app.config['HOST']}:{app.config['PORT']}")
    app.extensions["socketio"].run(app, host=app.config["HOST"], port=app.config["PORT"],
                                    allow_unsafe_werkzeug=True)
