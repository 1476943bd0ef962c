import base64
import json

from typer.testing import CliRunner

from conductor_crypt.cli import app
from conductor_crypt.config import load_config
from conductor_crypt.models import TaskRecord, WorkflowRecord
from conductor_crypt.persistence import get_encrypting_repository

runner = CliRunner()


def test_keygen():
    result = runner.invoke(app, ["keygen", "--bits", "128"])
    assert result.exit_code == 0, result.output
    assert len(base64.b64decode(result.stdout.strip())) == 16

    result = runner.invoke(app, ["keygen", "--bits", "100"])
    assert result.exit_code == 1


def test_record_encrypt_and_decrypt(tmp_path, config_file):
    document = {"customerInfo": {"ssn": "123-45-6789", "name": "Ada"}}
    plain = tmp_path / "plain.json"
    plain.write_text(json.dumps(document))

    result = runner.invoke(
        app,
        ["--config", str(config_file), "record", "encrypt", str(plain), "-p", "$.customerInfo.ssn", "-k", "clientA"],
    )
    assert result.exit_code == 0, result.output
    sealed = json.loads(result.stdout)
    assert sealed["customerInfo"]["ssn"].startswith("ENC:")
    assert sealed["customerInfo"]["name"] == "Ada"

    sealed_file = tmp_path / "sealed.json"
    sealed_file.write_text(json.dumps(sealed))
    result = runner.invoke(
        app,
        ["--config", str(config_file), "record", "decrypt", str(sealed_file), "-p", "$.customerInfo.ssn", "-k", "clientA"],
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == document


def test_record_decrypt_with_wrong_key_fails(tmp_path, config_file):
    plain = tmp_path / "plain.json"
    plain.write_text(json.dumps({"ssn": "123"}))
    result = runner.invoke(
        app, ["--config", str(config_file), "record", "encrypt", str(plain), "-p", "ssn", "-k", "clientA"]
    )
    sealed_file = tmp_path / "sealed.json"
    sealed_file.write_text(result.stdout)

    result = runner.invoke(
        app, ["--config", str(config_file), "record", "decrypt", str(sealed_file), "-p", "ssn", "-k", "clientB"]
    )
    assert result.exit_code == 1
    assert "decrypt failed" in result.output


def test_record_missing_file(tmp_path, config_file):
    result = runner.invoke(
        app,
        ["--config", str(config_file), "record", "encrypt", str(tmp_path / "nope.json"), "-p", "a", "-k", "clientA"],
    )
    assert result.exit_code == 1
    assert "File not found" in result.output


def test_context_command(tmp_path, config_file, definition):
    document = {
        "workflowId": "wf-1",
        "workflowDefinition": definition.model_dump(by_alias=True, mode="json"),
        "tasks": [
            {
                "taskId": "task-1",
                "workflowId": "wf-1",
                "referenceTaskName": "collect_customer_data",
            }
        ],
    }
    wf_file = tmp_path / "workflow.json"
    wf_file.write_text(json.dumps(document))

    result = runner.invoke(
        app, ["--config", str(config_file), "context", str(wf_file), "--task-ref", "collect_customer_data"]
    )
    assert result.exit_code == 0, result.output
    assert "enabled: True" in result.stdout
    assert "key_id: clientA" in result.stdout
    assert "$.accountDetails.cardNumber" in result.stdout
    assert "$.customerInfo.ssn" in result.stdout

    result = runner.invoke(app, ["--config", str(config_file), "context", str(wf_file)])
    assert "key_id: GLOBAL_DEFAULT_CLIENT" in result.stdout
    assert "$.workflowMetadata.sensitiveId" in result.stdout

    result = runner.invoke(app, ["--config", str(config_file), "context", str(wf_file), "--task-ref", "nope"])
    assert result.exit_code == 1


def test_workflow_list_and_show(config_file, definition):
    repo = get_encrypting_repository(config=load_config(str(config_file)))
    repo.create_workflow(
        WorkflowRecord(
            workflow_id="wf-1",
            input={"workflowMetadata": {"sensitiveId": "WF-SECRET-42"}},
            workflow_definition=definition,
        )
    )
    repo.create_task(
        TaskRecord(
            task_id="task-1",
            workflow_id="wf-1",
            reference_task_name="collect_customer_data",
            input={"customerInfo": {"ssn": "123-45-6789"}},
        )
    )
    repo.delegate.close()

    result = runner.invoke(app, ["--config", str(config_file), "workflow", "list", "MyFullyDynamicSecureWorkflow"])
    assert result.exit_code == 0, result.output
    assert "wf-1" in result.stdout

    result = runner.invoke(app, ["--config", str(config_file), "workflow", "show", "wf-1"])
    assert result.exit_code == 0, result.output
    assert "WF-SECRET-42" in result.stdout
    assert "collect_customer_data: SCHEDULED" in result.stdout

    result = runner.invoke(app, ["--config", str(config_file), "workflow", "show", "missing"])
    assert result.exit_code == 1
    assert "Workflow not found" in result.output
