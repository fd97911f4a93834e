import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console

from runattest import __version__
from runattest.config import Config, load_config
from runattest.conformance import run_conformance_checks
from runattest.files import load_run, read_json, write_json
from runattest.formats import default_registry
from runattest.log import configure_logging
from runattest.signable import payloads_for
from runattest.signing import sign_statement_with_sigstore
from runattest.subjects import retrieve_all_artifact_uris

app = typer.Typer(name="runattest", help="Provenance statements for Tekton task and pipeline runs")
console = Console()


def _emit(payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(payload, sort_keys=True))
        return
    console.print_json(data=payload)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log informational events"),
    json_log: bool = typer.Option(False, "--json-log", help="Write log events to stderr as JSON lines"),
):
    """Provenance statements for Tekton task and pipeline runs."""
    configure_logging(verbose=verbose, json_log=json_log)


def _with_deep_inspection(cfg: Config, enabled: bool) -> Config:
    if not enabled:
        return cfg
    return cfg.model_copy(
        update={
            "artifacts": cfg.artifacts.model_copy(
                update={"pipelinerun": cfg.artifacts.pipelinerun.model_copy(update={"deep_inspection": True})}
            )
        }
    )


@app.command()
def version(
    json_output: bool = typer.Option(False, "--json", help="Deterministic JSON output"),
):
    """Print version information."""
    _emit({"ok": True, "version": __version__}, json_output)


@app.command()
def formats(
    json_output: bool = typer.Option(False, "--json", help="Deterministic JSON output"),
):
    """List the payload types statements can be generated in."""
    _emit({"ok": True, "formats": default_registry().payload_types()}, json_output)


@app.command()
def generate(
    run: str = typer.Argument(..., help="Path to a TaskRun or PipelineRun JSON document"),
    child: List[str] = typer.Option([], "--child", help="Child TaskRun JSON for a PipelineRun (repeatable)"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to configuration JSON"),
    format: Optional[str] = typer.Option(
        None, "--format", help="Render only the run itself in this payload type"
    ),
    deep_inspection: bool = typer.Option(False, help="Inspect child task runs of a PipelineRun"),
    output: Optional[str] = typer.Option(None, help="Directory to write one <key>.json payload per artifact"),
    json_output: bool = typer.Option(False, "--json", help="Deterministic JSON output"),
):
    """Generate the payloads the configuration signs for a completed run."""
    try:
        cfg = _with_deep_inspection(load_config(config), deep_inspection)
        record = load_run(run, child)
        entries = payloads_for(record, cfg, payload_type=format)

        if output:
            out_dir = Path(output)
            for entry in entries:
                out_path = out_dir / f"{entry['key']}.json"
                write_json(out_path, entry.pop("payload"))
                entry["output_path"] = str(out_path)
        _emit({"ok": True, "run": record.name, "kind": record.kind, "artifacts": entries}, json_output)
    except Exception as e:
        _emit({"ok": False, "error": str(e), "command": "generate"}, json_output)
        raise typer.Exit(code=1) from e


@app.command("artifact-uris")
def artifact_uris(
    run: str = typer.Argument(..., help="Path to a TaskRun or PipelineRun JSON document"),
    child: List[str] = typer.Option([], "--child", help="Child TaskRun JSON for a PipelineRun (repeatable)"),
    deep_inspection: bool = typer.Option(False, help="Inspect child task runs of a PipelineRun"),
    json_output: bool = typer.Option(False, "--json", help="Deterministic JSON output"),
):
    """List every subject of a run as name@algorithm:hex."""
    try:
        record = load_run(run, child)
        uris = retrieve_all_artifact_uris(record, deep_inspection)
        _emit({"ok": True, "run": record.name, "artifact_uris": uris}, json_output)
    except Exception as e:
        _emit({"ok": False, "error": str(e), "command": "artifact-uris"}, json_output)
        raise typer.Exit(code=1) from e


@app.command()
def sign(
    statement: str = typer.Argument(..., help="Path to an in-toto Statement/v1 JSON document"),
    bundle_out: Optional[str] = typer.Option(None, help="Output path for the Sigstore bundle"),
    identity_token: Optional[str] = typer.Option(None, help="OIDC token for keyless signing"),
    identity_token_env: str = typer.Option(
        "SIGSTORE_ID_TOKEN", help="Environment variable containing OIDC token"
    ),
    interactive_oidc: bool = typer.Option(
        False, help="Acquire OIDC token interactively via browser"
    ),
    staging: bool = typer.Option(False, help="Use Sigstore staging instance"),
    offline: bool = typer.Option(False, help="Use cached trust root only"),
    json_output: bool = typer.Option(False, "--json", help="Deterministic JSON output"),
):
    """Sign a generated statement as a DSSE envelope with Sigstore."""
    try:
        statement_path = Path(statement)
        payload = read_json(statement)
        out = Path(bundle_out) if bundle_out else statement_path.with_name(f"{statement_path.name}.sigstore.json")
        signature = sign_statement_with_sigstore(
            statement=payload,
            bundle_out=out,
            identity_token=identity_token,
            identity_token_env=identity_token_env,
            interactive_oidc=interactive_oidc,
            staging=staging,
            offline=offline,
        )
        _emit({"ok": True, "statement_path": str(statement_path), "signature": signature}, json_output)
    except Exception as e:
        _emit({"ok": False, "error": str(e), "command": "sign"}, json_output)
        raise typer.Exit(code=1) from e


@app.command()
def conformance(
    output: Optional[str] = typer.Option(
        None, help="Optional output path for conformance report JSON"
    ),
    json_output: bool = typer.Option(False, "--json", help="Deterministic JSON output"),
):
    """Run the built-in provenance checks and emit a machine-readable report."""
    try:
        report = run_conformance_checks()
        payload = report.model_dump(by_alias=True)
        if output:
            out_path = Path(output)
            write_json(out_path, payload)
            payload["output_path"] = str(out_path)
        payload["ok"] = report.overall_status == "pass"
        _emit(payload, json_output)
        if report.overall_status != "pass":
            raise typer.Exit(code=1)
    except typer.Exit:
        raise
    except Exception as e:
        _emit({"ok": False, "error": str(e), "command": "conformance"}, json_output)
        raise typer.Exit(code=1) from e


if __name__ == "__main__":
    app()
