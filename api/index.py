import os
import sys

# Serverless entry point: the repository root holds the 'trustgraph' package
root_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if root_dir not in sys.path:
    sys.path.append(root_dir)

try:
    from trustgraph.app import create_app
    app = create_app()

except Exception as e:
    # Diagnostic fail-safe so a boot error is visible instead of a blank 500
    import traceback
    from flask import Flask, jsonify

    boot_error = str(e)
    boot_traceback = traceback.format_exc()
    app = Flask(__name__)

    @app.route('/', defaults={'path': ''})
    @app.route('/<path:path>')
    def catch_all(path):
        return jsonify({
            'success': False,
            'data': {'traceback': boot_traceback},
            'error': f"Application failed to start: {boot_error}",
        }), 500
