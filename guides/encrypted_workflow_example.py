"""Example showing an encrypted workflow stored through the decorator."""

import base64

from conductor_crypt import (
    CryptConfig,
    TaskRecord,
    WorkflowDef,
    WorkflowRecord,
    get_encrypting_repository,
)
from conductor_crypt.config import KeyStoreConfig
from conductor_crypt.crypto import generate_key


def main():
    """Store a workflow and a task, then show what the store actually holds."""
    # Keys for two tenants plus the default client
    keys = {
        key_id: base64.b64encode(generate_key()).decode()
        for key_id in ("clientA", "clientB", "GLOBAL_DEFAULT_CLIENT")
    }
    config = CryptConfig(key_store=KeyStoreConfig(backend="static", keys=keys))
    repo = get_encrypting_repository(config=config)

    definition = WorkflowDef.model_validate(
        {
            "name": "MyFullyDynamicSecureWorkflow",
            "inputTemplate": {
                "_defaultEncryptionEnabled": True,
                "_sensitivePaths": ["$.workflowMetadata.sensitiveId"],
            },
            "tasks": [
                {
                    "name": "data_collection_task",
                    "taskReferenceName": "collect_customer_data",
                    "inputTemplate": {
                        "_clientId": "clientA",
                        "_sensitivePaths": ["$.customerInfo.ssn"],
                    },
                }
            ],
        }
    )

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
            input={"customerInfo": {"ssn": "123-45-6789", "name": "Ada"}},
        )
    )

    stored = repo.delegate.get_task("task-1")
    print(f"🔒 Stored task input: {stored.input}")
    print(f"🔓 Read through decorator: {repo.get_task('task-1').input}")


if __name__ == "__main__":
    main()
