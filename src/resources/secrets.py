import boto3
from botocore.exceptions import ClientError

from src.model import AwsEnviroment, SecretStore
from src.model.async_value import AsyncValue


class SecretsManagerStore(SecretStore):
    """SecretStore auf Basis von AWS Secrets Manager"""

    def __init__(self, env: AwsEnviroment, client=None):
        self.env = env
        self._client = client

    def _get_client(self):
        if self._client is None:
            session = boto3.session.Session(
                profile_name=self.env.profile,
                region_name=self.env.region
            )
            self._client = session.client('secretsmanager')
        return self._client

    def lookup(self, secret_ref: str) -> AsyncValue[str]:
        """Hole den aktuellen Secret-String zu einer Secret-ARN"""
        try:
            response = self._get_client().get_secret_value(SecretId=secret_ref)
        except ClientError as e:
            print(f"Fehler beim Abrufen des Secrets {secret_ref}: {e}")
            return AsyncValue.failed(e, label=f"secret:{secret_ref}")
        return AsyncValue.resolved(response.get('SecretString', ''), label=f"secret:{secret_ref}")

    def __repr__(self) -> str:
        return f"SecretsManagerStore(region='{self.env.region}')"
