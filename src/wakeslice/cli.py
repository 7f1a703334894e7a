# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Command Line Interface
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click

from wakeslice.config_schema import validate_config
from wakeslice.engine import SliceEngine
from wakeslice.errors import ConfigurationError, NumericalOverflow
from wakeslice.io.logging_config import setup_wakeslice_logging
from wakeslice.plasma.linear_response import LinearPlasmaResponse, gaussian_driver

LOGGER = logging.getLogger("wakeslice.cli")

DEFAULT_CONFIG: dict[str, Any] = {
    "run_name": "demo",
    "levels": [{"nx": 32, "ny": 32, "lo": [-1.0, -1.0], "hi": [1.0, 1.0]}],
    "n_slices": 8,
    "dzeta": 0.1,
    "predictor_corrector": {"mixing_factor": 0.5},
}


def _load_config(path: Optional[Path]) -> dict[str, Any]:
    if path is None:
        return json.loads(json.dumps(DEFAULT_CONFIG))
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"{path}: invalid JSON ({exc})") from exc
    if not isinstance(data, dict):
        raise click.ClickException(f"{path}: top level must be a JSON object")
    return data


def build_response(n_slices: int, dzeta: float, susceptibility: float, amplitude: float) -> LinearPlasmaResponse:
    """Gaussian driver current centred in the box with a linear plasma response."""
    sigma_zeta = max(n_slices / 6.0, 1.0)
    centre = 0.5 * (n_slices - 1)
    return LinearPlasmaResponse(
        dzeta,
        susceptibility,
        jz_profile=gaussian_driver(amplitude, sigma_r=0.3, sigma_zeta=sigma_zeta, center_slice=centre),
        rhomjz_profile=gaussian_driver(-0.5 * amplitude, sigma_r=0.3, sigma_zeta=sigma_zeta, center_slice=centre),
    )


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("config_path", required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--slices", "n_slices", type=int, default=None, help="Override the number of slices.")
@click.option("--explicit", is_flag=True, help="Use the explicit B solve instead of predictor-corrector.")
@click.option("--chi", "susceptibility", type=float, default=1.0, show_default=True, help="Plasma susceptibility.")
@click.option("--amplitude", type=float, default=1.0, show_default=True, help="Driver current amplitude.")
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Write the summary here.")
@click.option("--json-logs", is_flag=True, help="Emit structured JSON log lines.")
@click.option(
    "--log-level",
    default="WARNING",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
)
def cli(
    config_path: Optional[Path],
    n_slices: Optional[int],
    explicit: bool,
    susceptibility: float,
    amplitude: float,
    output: Optional[Path],
    json_logs: bool,
    log_level: str,
) -> None:
    """Run a synthetic slice sweep and print the convergence summary as JSON."""
    setup_wakeslice_logging(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        json_output=json_logs,
    )
    raw = _load_config(config_path)
    if n_slices is not None:
        raw["n_slices"] = n_slices
    if explicit:
        raw.setdefault("explicit", {})["enabled"] = True

    try:
        config = validate_config(raw)
        response = build_response(config.n_slices, config.dzeta, susceptibility, amplitude)
        engine = SliceEngine(
            config,
            response,
            depositor=response if config.explicit.enabled else None,
        )
        log = engine.run()
    except (ConfigurationError, NumericalOverflow) as exc:
        raise click.ClickException(str(exc)) from exc

    summary = {"run_name": config.run_name, **log.summary()}
    text = json.dumps(summary, indent=2)
    if output is not None:
        output.write_text(text + "\n", encoding="utf-8")
        LOGGER.info("Summary written to %s", output)
    click.echo(text)


def main() -> int:
    try:
        cli.main(standalone_mode=False)
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except SystemExit as exc:
        code = exc.code if isinstance(exc.code, int) else 1
        return code
    return 0


if __name__ == "__main__":
    sys.exit(main())
