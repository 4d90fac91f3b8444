# ==============================================================================
# FINOVA FITNESS - BACKEND ENTRY POINT (app.py)
# ==============================================================================

from finova import create_app

app = create_app()

# ----------------- Main Execution -----------------
if __name__ == '__main__':
    app.run(debug=True, port=5001)
