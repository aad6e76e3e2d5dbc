# wsgi.py
import logging

from yoga_scheduler import create_app

logging.getLogger("werkzeug").setLevel(logging.INFO)

# Single entrypoint for dev + prod
app = create_app()

logging.info("WSGI startup complete; Flask app created.")

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000)
