"""Command line interface for conductor-crypt."""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path
from typing import List, Optional

import typer

from conductor_crypt import (
    ConductorCryptError,
    ConfigResolver,
    CryptConfig,
    EncryptionContext,
    PathTransformEngine,
    TransformMode,
    WorkflowRecord,
    get_crypto_provider,
    get_encrypting_repository,
    load_config,
)
from conductor_crypt.crypto import generate_key

app = typer.Typer(help="CLI for conductor-crypt")

# Command groups
record_app = typer.Typer(help="Encrypt or decrypt JSON documents")
workflow_app = typer.Typer(help="Inspect stored workflows")

app.add_typer(record_app, name="record")
app.add_typer(workflow_app, name="workflow")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    log_level: Optional[str] = typer.Option(None, help="Logging level (default from config)"),
) -> None:
    """conductor-crypt CLI entry point."""
    ctx.obj = load_config(str(config) if config else None)
    level = log_level or ctx.obj.log_level
    logging.basicConfig(level=level.upper(), format="%(levelname)s %(name)s: %(message)s")


def _read_json(path: Path) -> dict:
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError:
        typer.secho(f"File not found: {path}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    except json.JSONDecodeError as e:
        typer.secho(f"Invalid JSON in {path}: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if not isinstance(data, dict):
        typer.secho("Expected a JSON object", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return data


def _transform_file(
    config: CryptConfig, file: Path, paths: List[str], key_id: str, mode: TransformMode
) -> None:
    document = _read_json(file)
    enc_ctx = EncryptionContext(enabled=True, key_id=key_id, sensitive_paths=frozenset(paths))
    with get_crypto_provider(config) as provider:
        engine = PathTransformEngine(provider)
        try:
            result = engine.apply(document, enc_ctx.sensitive_paths, mode, enc_ctx)
        except ConductorCryptError as e:
            typer.secho(str(e), fg=typer.colors.RED)
            raise typer.Exit(code=1)
    typer.echo(json.dumps(result, indent=2))


@app.command("keygen")
def keygen(bits: int = typer.Option(256, help="Key length in bits (128, 192 or 256)")) -> None:
    """
    Generate a random key and print it base64-encoded.

    Example:
        conductor-crypt keygen
        conductor-crypt keygen --bits 128
    """
    if bits not in (128, 192, 256):
        typer.secho("Key length must be 128, 192 or 256 bits", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(base64.b64encode(generate_key(bits)).decode("ascii"))


@record_app.command("encrypt")
def record_encrypt(
    ctx: typer.Context,
    file: Path,
    path: List[str] = typer.Option(..., "--path", "-p", help="Path expression, repeatable"),
    key_id: str = typer.Option(..., "--key-id", "-k", help="Key identifier"),
) -> None:
    """
    Encrypt the addressed string leaves of a JSON document.

    Example:
        conductor-crypt record encrypt input.json -p '$.customerInfo.ssn' -k clientA
    """
    _transform_file(ctx.obj, file, path, key_id, TransformMode.ENCRYPT)


@record_app.command("decrypt")
def record_decrypt(
    ctx: typer.Context,
    file: Path,
    path: List[str] = typer.Option(..., "--path", "-p", help="Path expression, repeatable"),
    key_id: str = typer.Option(..., "--key-id", "-k", help="Key identifier"),
) -> None:
    """Decrypt the addressed leaves of a JSON document produced by ``record encrypt``."""
    _transform_file(ctx.obj, file, path, key_id, TransformMode.DECRYPT)


@app.command("context")
def context(
    ctx: typer.Context,
    workflow_file: Path,
    task_ref: Optional[str] = typer.Option(
        None, help="Reference name of a task inside the workflow document"
    ),
) -> None:
    """
    Show the encryption context resolved for a workflow or one of its tasks.

    The document is a workflow execution in Conductor JSON form, including its
    ``workflowDefinition`` and optionally ``tasks``.

    Example:
        conductor-crypt context workflow.json --task-ref collect_customer_data
    """
    workflow = WorkflowRecord.model_validate(_read_json(workflow_file))
    task = None
    if task_ref:
        task = next((t for t in workflow.tasks if t.reference_task_name == task_ref), None)
        if task is None:
            typer.secho(f"Task {task_ref} not found in workflow", fg=typer.colors.RED)
            raise typer.Exit(code=1)

    resolver = ConfigResolver(default_key_id=ctx.obj.encryption.default_client_id)
    enc_ctx = resolver.resolve(workflow, task)
    typer.echo(f"enabled: {enc_ctx.enabled}")
    typer.echo(f"key_id: {enc_ctx.key_id}")
    typer.echo("sensitive_paths:")
    for p in sorted(enc_ctx.sensitive_paths):
        typer.echo(f"  - {p}")


@workflow_app.command("list")
def workflow_list(ctx: typer.Context, workflow_name: str) -> None:
    """
    List running workflow ids for ``workflow_name`` from the configured store.

    Example:
        conductor-crypt workflow list MyFullyDynamicSecureWorkflow
    """
    repo = get_encrypting_repository(config=ctx.obj)
    ids = repo.get_running_workflow_ids(workflow_name)
    if not ids:
        typer.echo("No workflows found")
        return
    for workflow_id in ids:
        typer.echo(workflow_id)


@workflow_app.command("show")
def workflow_show(ctx: typer.Context, workflow_id: str) -> None:
    """
    Show a stored workflow with its sensitive fields decrypted.

    Example:
        conductor-crypt workflow show 3f2a...
    """
    repo = get_encrypting_repository(config=ctx.obj)
    try:
        wf = repo.get_workflow(workflow_id, include_tasks=True)
    except ConductorCryptError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if wf is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Workflow {wf.workflow_id}: {wf.status}")
    typer.echo(f"Input: {json.dumps(wf.input)}")
    if wf.output:
        typer.echo(f"Output: {json.dumps(wf.output)}")
    for task in wf.tasks:
        typer.echo(f"- {task.reference_task_name or task.task_type}: {task.status}")


if __name__ == "__main__":  # pragma: no cover
    app()
