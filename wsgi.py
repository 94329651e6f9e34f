"""
WSGI entry point — used by gunicorn.

Starts the overdue sweep scheduler in this process. With several workers each
runs its own scheduler; sweeps are idempotent, so duplicates only recompute
the same flags.
"""
from leadcrm import create_app, start_scheduler

app = create_app()
start_scheduler(app)

if __name__ == '__main__':
    import os
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 8080)))
