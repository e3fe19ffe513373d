import os
import logging
from rich.logging import RichHandler
from flask import Flask, jsonify
from asgiref.wsgi import WsgiToAsgi
import matplotlib
matplotlib.use("Agg")

from feedback_portal.config import MAX_FILE_SIZE, SECRET_KEY, SERVER_PORT, UPLOAD_FOLDER
from feedback_portal.exceptions import FeedbackError
from feedback_portal.models import init_db
from routes.admin_routes import admin_bp
from routes.report_routes import report_bp
from routes.student_routes import student_bp

# Configure rich logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)

logging.root.handlers = [
    RichHandler(rich_tracebacks=True, show_path=True, tracebacks_show_locals=False,
                log_time_format="[%b %d, %Y, %I:%M:%S %p]",
                )
]
logger = logging.getLogger("feedback_system")

app = Flask(__name__)
app.secret_key = SECRET_KEY
app.config['MAX_CONTENT_LENGTH'] = MAX_FILE_SIZE

# Register blueprints
app.register_blueprint(student_bp)
app.register_blueprint(admin_bp)
app.register_blueprint(report_bp)

# Ensure upload folder exists
os.makedirs(UPLOAD_FOLDER, exist_ok=True)

asgi_app = WsgiToAsgi(app)


@app.errorhandler(FeedbackError)
def handle_feedback_error(error):
    if error.status_code >= 500:
        logger.error(f"{type(error).__name__}: {error.message}")
    else:
        logger.warning(f"{type(error).__name__}: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@app.route("/health")
def health():
    return jsonify({'success': True, 'status': 'ok'})


if __name__ == "__main__":
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized")

    import uvicorn
    import socket
    host_ip = socket.gethostbyname(socket.gethostname())
    logger.info(f"Starting server on {host_ip}:{SERVER_PORT}")
    uvicorn.run(asgi_app, host=host_ip, port=SERVER_PORT, log_config=None)
