from src.model import Resources
from src.model.registry import register_resource


@register_resource("s3")
class Bucket(Resources):
    """S3 Bucket für Uploads und Laravel Filesystem"""

    output_keys = ("bucket_name", "arn")

    def __init__(
        self,
        bucket_name: str,
        policy: dict = None,
        force_destroy: bool = False
    ):
        self.bucket_name = bucket_name
        self.policy = policy
        self.force_destroy = force_destroy

    def get_resource_id(self) -> str:
        return self.bucket_name

    def properties(self) -> dict:
        properties = {
            "bucket_name": self.bucket_name,
            "force_destroy": self.force_destroy,
        }
        if self.policy:
            properties["policy"] = self.policy
        return properties

    def __repr__(self) -> str:
        return f"Bucket(name='{self.bucket_name}')"
