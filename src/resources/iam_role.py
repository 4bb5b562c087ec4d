from typing import Any
from weakref import WeakKeyDictionary

from src.model import Resources
from src.model.async_value import AsyncValue
from src.model.errors import ConfigurationError, RoleFrozenError
from src.model.registry import register_resource

LAMBDA_ASSUME_ROLE_POLICY = {
    "Version": "2012-10-17",
    "Statement": [{
        "Effect": "Allow",
        "Principal": {"Service": "lambda.amazonaws.com"},
        "Action": "sts:AssumeRole"
    }]
}

BASIC_EXECUTION_POLICY_ARN = "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"


@register_resource("iam_role")
class ComputeRole(Resources):
    """
    Gemeinsame Execution-Role aller Functions eines Stacks.

    Components attach named inline policies while the stack is composed.
    Attaching is idempotent per name. Once a function build consumed the role
    it is frozen and further attachments fail.
    """

    output_keys = ("arn", "role_name")

    def __init__(
        self,
        role_name: str,
        assume_role_policy: dict = None,
        managed_policies: list = None,
        description: str = ""
    ):
        self.role_name = role_name
        self.assume_role_policy = assume_role_policy or LAMBDA_ASSUME_ROLE_POLICY
        self.managed_policies = list(managed_policies) if managed_policies is not None else [BASIC_EXECUTION_POLICY_ARN]
        self.description = description
        self._attachments: dict[str, Any] = {}
        self._frozen = False

    def attach(self, name: str, policy) -> bool:
        """
        Inline Policy unter einem Namen anhängen.

        Returns:
            bool: True if the attachment was added, False if the same policy
                  was already attached under that name.
        """
        if not name:
            raise ConfigurationError("Policy attachment name must not be empty", subject=self.role_name)
        if self._frozen:
            raise RoleFrozenError(f"Role '{self.role_name}' is already used by a function, cannot attach '{name}'")
        if name in self._attachments:
            existing = self._attachments[name]
            if existing is policy or _same_policy(existing, policy):
                return False
            raise ConfigurationError(
                f"Role '{self.role_name}' already has a different policy attached as '{name}'",
                subject=name
            )
        self._attachments[name] = policy
        print(f"  Policy attached to {self.role_name}: {name}")
        return True

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def attachments(self) -> dict[str, Any]:
        return dict(self._attachments)

    def get_resource_id(self) -> str:
        return self.role_name

    def properties(self) -> dict:
        return {
            "role_name": self.role_name,
            "assume_role_policy": self.assume_role_policy,
            "managed_policies": list(self.managed_policies),
            "inline_policies": dict(self._attachments),
            "description": self.description,
        }

    def __repr__(self) -> str:
        return f"ComputeRole(name='{self.role_name}', attachments={list(self._attachments)})"


def _same_policy(a, b) -> bool:
    # deferred policies compare by value once both are resolved
    if isinstance(a, AsyncValue) or isinstance(b, AsyncValue):
        a, b = AsyncValue.lift(a), AsyncValue.lift(b)
        return a.is_resolved and b.is_resolved and a.result() == b.result()
    return a == b


# one derived policy per input ARN, so repeated attaches see the same object
_bucket_policies: "WeakKeyDictionary[AsyncValue, AsyncValue]" = WeakKeyDictionary()
_queue_policies: "WeakKeyDictionary[AsyncValue, AsyncValue]" = WeakKeyDictionary()


def bucket_access_policy(bucket_arn: AsyncValue[str]) -> AsyncValue[dict]:
    """Lese-/Schreibzugriff auf einen Bucket und seine Objekte"""
    if bucket_arn in _bucket_policies:
        return _bucket_policies[bucket_arn]
    policy = bucket_arn.map(lambda arn: {
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Action": ["s3:GetObject", "s3:PutObject", "s3:DeleteObject", "s3:ListBucket"],
            "Resource": [arn, f"{arn}/*"]
        }]
    }, label="policy.s3")
    _bucket_policies[bucket_arn] = policy
    return policy


def queue_consume_policy(queue_arn: AsyncValue[str]) -> AsyncValue[dict]:
    if queue_arn in _queue_policies:
        return _queue_policies[queue_arn]
    policy = queue_arn.map(lambda arn: {
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Action": [
                "sqs:SendMessage",
                "sqs:ReceiveMessage",
                "sqs:DeleteMessage",
                "sqs:ChangeMessageVisibility",
                "sqs:GetQueueAttributes",
                "sqs:GetQueueUrl"
            ],
            "Resource": arn
        }]
    }, label="policy.sqs")
    _queue_policies[queue_arn] = policy
    return policy


def vpc_access_policy() -> dict:
    """ENI-Verwaltung, damit Functions in Subnetze gelegt werden können"""
    return {
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Action": [
                "ec2:CreateNetworkInterface",
                "ec2:DescribeNetworkInterfaces",
                "ec2:DeleteNetworkInterface",
                "ec2:AssignPrivateIpAddresses",
                "ec2:UnassignPrivateIpAddresses"
            ],
            "Resource": "*"
        }]
    }
