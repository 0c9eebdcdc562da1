"""
Development server entry point
Run the Flask application with: python run.py
"""
from clinic_admission import create_app
import os

app = create_app()

if __name__ == '__main__':
    host = os.getenv('FLASK_HOST', '0.0.0.0')
    port = int(os.getenv('FLASK_PORT', 5000))
    debug = os.getenv('FLASK_ENV', 'development') == 'development'

    policy = app.config['CLINIC_POLICY']
    app.logger.info(
        'Clinic admission API on %s:%s (debug=%s), %s, %s-minute slots',
        host, port, debug, policy.timezone, policy.slot_minutes,
    )

    app.run(host=host, port=port, debug=debug, threaded=True)
