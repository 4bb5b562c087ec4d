import os
from pathlib import Path

from dotenv import load_dotenv

from src.core.composer import DeploymentComposer
from src.core.plan import PreviewProvisioner, PreviewSecretStore, render_plan
from src.model import AwsEnviroment
from src.model.flags import FeatureFlags

load_dotenv()

env = AwsEnviroment(
    profile=os.getenv("AWS_PROFILE", "default"),
    account=os.getenv("AWS_ACCOUNT", ""),
    region=os.getenv("AWS_REGION", "us-east-1")
)

config_dir = Path("config")
flags = FeatureFlags.from_yaml(Path(os.getenv("STACK_CONFIG", "stack.dev.yaml")))

provisioner = PreviewProvisioner()
composer = DeploymentComposer(flags, provisioner, PreviewSecretStore(), env=env)
deployment = composer.compose()
deployment.raise_for_failure()

print(render_plan(deployment, provisioner))

outputs = deployment.exports.resolve().result()
outputs.to_yaml(config_dir / f"outputs_{deployment.name}.yaml")
print(f"[SUCCESS] Outputs saved: {config_dir / f'outputs_{deployment.name}.yaml'}")
