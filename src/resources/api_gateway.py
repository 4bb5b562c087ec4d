from src.model import Resources
from src.model.registry import register_resource


@register_resource("api_gateway")
class HttpApi(Resources):
    """HTTP API (API Gateway v2) vor der Web-Function"""

    output_keys = ("api_id", "api_url")

    def __init__(
        self,
        api_name: str,
        function_arn,
        description: str = "",
        routes: list = None
    ):
        """
        Args:
            api_name: Name des API Gateway
            function_arn: ARN der Ziel-Function (AsyncValue oder String)
            description: API Beschreibung
            routes: Route Keys, Default ist ein Catch-all ("$default")
        """
        self.api_name = api_name
        self.function_arn = function_arn
        self.description = description
        self.routes = list(routes) if routes else ["$default"]

    def get_resource_id(self) -> str:
        return self.api_name

    def properties(self) -> dict:
        return {
            "api_name": self.api_name,
            "protocol_type": "HTTP",
            "description": self.description,
            "integration": {
                "type": "AWS_PROXY",
                "uri": self.function_arn,
                "payload_format_version": "2.0",
            },
            "routes": list(self.routes),
        }

    def __repr__(self) -> str:
        return f"HttpApi(name='{self.api_name}', routes={self.routes})"
