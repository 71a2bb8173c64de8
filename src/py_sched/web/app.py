"""Flask application factory for the simulator API.

The ``create_app`` function returns a Flask app with two endpoints:

- ``GET /api/disciplines``: list the discipline names.
- ``POST /api/simulate``: run a simulation and return JSON.
"""

from __future__ import annotations

from dataclasses import replace

from flask import Flask, Response, jsonify, request

from py_sched.config import SimulationConfig
from py_sched.jobs import MalformedRecordError, parse_jobs
from py_sched.process.scheduler import DISCIPLINES, UnknownDisciplineError
from py_sched.simulator import simulate

_HTTP_BAD_REQUEST = 400
_OVERRIDABLE = ("quantum", "starvation_bound")


def create_app(config: SimulationConfig | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Defaults for every simulation this app runs.

    Returns:
        A configured Flask application ready to serve.

    """
    base_config = config or SimulationConfig()
    app = Flask(__name__)

    @app.route("/api/disciplines")
    def disciplines() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the registered discipline names."""
        return jsonify({"disciplines": list(DISCIPLINES)})

    @app.route("/api/simulate", methods=["POST"])
    def run_simulation() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Run a simulation and return its log, per-job stats and summary.

        Expects JSON body: ``{"discipline": "...", "jobs": "1 0 5 0\\n..."}``.
        ``jobs`` may also be a list of record strings, and ``quantum`` /
        ``starvation_bound`` override the app's defaults.

        Returns:
            JSON with ``log``, ``jobs`` and ``summary`` fields, or an
            ``error`` field with status 400.

        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or "discipline" not in data or "jobs" not in data:
            return jsonify({"error": "Missing 'discipline' or 'jobs' field"}), _HTTP_BAD_REQUEST

        raw_jobs = data["jobs"]
        if not isinstance(raw_jobs, str | list):
            msg = "'jobs' must be a string or a list of records"
            return jsonify({"error": msg}), _HTTP_BAD_REQUEST
        lines = raw_jobs.splitlines() if isinstance(raw_jobs, str) else [str(x) for x in raw_jobs]

        overrides = {key: data[key] for key in _OVERRIDABLE if key in data}
        # JSON true/false would otherwise pass as the integers 1 and 0
        bad = [k for k, v in overrides.items() if isinstance(v, bool) or not isinstance(v, int)]
        if bad:
            return jsonify({"error": f"{bad[0]!r} must be an integer"}), _HTTP_BAD_REQUEST

        try:
            run_config = replace(base_config, **overrides)
            table = parse_jobs(lines)
            result = simulate(table, str(data["discipline"]), config=run_config)
        except (MalformedRecordError, UnknownDisciplineError, ValueError, TypeError) as e:
            return jsonify({"error": str(e)}), _HTTP_BAD_REQUEST

        return jsonify(
            {
                "log": result.logger.messages(),
                "jobs": [s.as_dict() for s in result.jobs],
                "summary": result.summary(),
            }
        )

    return app


def main() -> None:
    """Run the web API development server.

    This is the ``py-sched-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=8080)
