from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from src.core.exports import NOT_CREATED, StackExports
from src.core.transactional_deploy import CompositionContext
from src.model import AwsEnviroment, Provisioner, ResourceHandle, SecretStore
from src.model.async_value import AsyncValue
from src.model.errors import UnresolvedValueError, UnsupportedCombinationError
from src.model.flags import FeatureFlags
from src.resources.api_gateway import HttpApi
from src.resources.database import Credentials, ManagedDatabaseCluster, resolve_credentials
from src.resources.iam_role import ComputeRole, bucket_access_policy, queue_consume_policy, vpc_access_policy
from src.resources.lambda_function import CodeArchive, FunctionFactory, FunctionSpec, InvokePermission, VpcConfig
from src.resources.layers import DEFAULT_LAYER_REGION, LayerName, LayerRegistry
from src.resources.network import MYSQL_PORT, NetworkTopology, SecurityBoundary
from src.resources.queue import QueueSubscription, WorkQueue
from src.resources.s3 import Bucket
from src.resources.schedule import ScheduledTrigger

UNIT_WEB = "web"
UNIT_ARTISAN = "artisan"
UNIT_WORKER = "worker"

OCTANE_HANDLER = "Bref\\LaravelBridge\\Http\\OctaneHandler"
FPM_HANDLER = "public/index.php"
ARTISAN_HANDLER = "artisan"
QUEUE_HANDLER = "Bref\\LaravelBridge\\Queue\\QueueHandler"

EVENTS_PRINCIPAL = "events.amazonaws.com"
API_GATEWAY_PRINCIPAL = "apigateway.amazonaws.com"


@dataclass(frozen=True)
class ComputeUnit:
    """Eine der drei Lambda-Einheiten des Stacks"""
    key: str
    function_name: str
    handler: str
    layers: tuple
    timeout: int
    environment: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class DatabaseStack:
    security_boundary: ResourceHandle
    cluster: ResourceHandle
    credentials: AsyncValue[Credentials]


@dataclass
class Deployment:
    """Result of one composition; optional parts are None when not created"""
    name: str
    flags: FeatureFlags
    handles: dict[str, ResourceHandle]
    order: list[str]
    role: ResourceHandle
    bucket: ResourceHandle
    queue: ResourceHandle
    api: ResourceHandle
    functions: dict[str, ResourceHandle]
    exports: StackExports
    network: Optional[ResourceHandle] = None
    database: Optional[DatabaseStack] = None
    triggers: list[ResourceHandle] = field(default_factory=list)

    @property
    def security_boundary(self) -> Optional[ResourceHandle]:
        return self.database.security_boundary if self.database else None

    @property
    def credentials(self) -> Optional[AsyncValue[Credentials]]:
        return self.database.credentials if self.database else None

    def function_spec(self, unit: str) -> FunctionSpec:
        return self.functions[unit].resource

    def triggers_for(self, unit: str) -> list[ScheduledTrigger]:
        return [t.resource for t in self.triggers if t.resource.target_unit == unit]

    def settle(self) -> AsyncValue:
        """Resolves once every declared resource and export is known; fails with the first cause"""
        terminal = [handle.outputs for handle in self.handles.values()]
        if self.credentials is not None:
            terminal.append(self.credentials)
        terminal.append(self.exports.resolve())
        return AsyncValue.all(*terminal)

    def raise_for_failure(self) -> None:
        """
        Re-raise the first failure of the deployment.

        Raises:
            UnresolvedValueError: If the provisioner has not settled every
                                  resource yet, so success is not known.
        """
        settled = self.settle()
        if settled.is_failed:
            raise settled.error
        if settled.is_pending:
            pending = [rid for rid, handle in self.handles.items() if handle.outputs.is_pending]
            raise UnresolvedValueError(f"Deployment {self.name} is not settled yet, pending: {pending}")


def merge_environment(base: Mapping[str, Any], override: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
    """Rechts-biased Merge: Einträge aus override gewinnen"""
    merged = dict(base)
    merged.update(override or {})
    return merged


class DeploymentComposer:
    """
    Composes the full Laravel-on-Lambda stack from feature flags.

    The composition is linear: network, database, storage and queue, the
    shared role, then the three compute units and finally the scheduled
    triggers. Values that only exist after provisioning (endpoint, secret,
    function ARNs) are threaded through AsyncValues; nothing here waits.
    """

    def __init__(
        self,
        flags: FeatureFlags,
        provisioner: Provisioner,
        secret_store: SecretStore,
        env: AwsEnviroment = None,
        function_factory: FunctionFactory = None
    ):
        self.flags = flags
        self.provisioner = provisioner
        self.secret_store = secret_store
        self.env = env
        layer_region = env.region if env and env.region else DEFAULT_LAYER_REGION
        self.function_factory = function_factory or FunctionFactory(
            LayerRegistry(php_version=flags.php_version, region=layer_region)
        )

    @property
    def name(self) -> str:
        return f"{self.flags.app_name}-{self.flags.stack_name}"

    def compose(self) -> Deployment:
        with CompositionContext(self.name, self.provisioner) as ctx:
            network = self.compose_network(ctx)
            database = self.compose_database(ctx, network) if self.flags.database_enabled else None

            bucket = ctx.add_resource("bucket", Bucket(bucket_name=f"{self.name}-storage"))
            queue = ctx.add_resource("queue", WorkQueue(queue_name=f"{self.name}-jobs"))
            role = self.compose_role(ctx, bucket, queue, network)

            environment = self.base_environment(bucket, database)
            vpc_config = self.vpc_config(network, database)
            functions = {}
            for unit in self.compute_units(queue):
                spec = self.function_factory.build(
                    name=unit.function_name,
                    code=CodeArchive(self.flags.code_path),
                    role=role,
                    handler=unit.handler,
                    environment=merge_environment(environment, unit.environment),
                    bref_layers=unit.layers,
                    timeout=unit.timeout,
                    vpc_config=vpc_config
                )
                depends_on = [role] + ([network] if network else [])
                functions[unit.key] = ctx.add_resource(unit.key, spec, depends_on=depends_on)

            api = self.compose_http_api(ctx, functions[UNIT_WEB])
            ctx.add_resource("worker-subscription", QueueSubscription(
                name=f"{self.name}-worker-subscription",
                queue_arn=queue.output("arn"),
                function_name=functions[UNIT_WORKER].output("function_name")
            ), depends_on=[queue, functions[UNIT_WORKER]])

            triggers = self.compose_triggers(ctx, functions)
            exports = self.build_exports(api, bucket, role, queue, functions, network, database)

        return Deployment(
            name=self.name,
            flags=self.flags,
            handles=dict(ctx.handles),
            order=ctx.order,
            role=role,
            bucket=bucket,
            queue=queue,
            api=api,
            functions=functions,
            exports=exports,
            network=network,
            database=database,
            triggers=triggers
        )

    def compose_network(self, ctx: CompositionContext) -> Optional[ResourceHandle]:
        if not self.flags.requires_network:
            return None
        print(f"[NETWORK] VPC required (useMySQL={self.flags.use_mysql}, useVPC={self.flags.use_vpc})")
        return ctx.add_resource("vpc", NetworkTopology(name=f"{self.name}-vpc"))

    def compose_database(self, ctx: CompositionContext, network: Optional[ResourceHandle]) -> DatabaseStack:
        if network is None:
            raise UnsupportedCombinationError("A managed database needs a network", subject="useMySQL")
        topology: NetworkTopology = network.resource

        boundary = ctx.add_resource("aurora-security-group", SecurityBoundary(
            name=f"{self.name}-aurora-security-group",
            network=topology,
            vpc_id=network.output("vpc_id")
        ), depends_on=[network])

        cluster = ctx.add_resource("aurora", ManagedDatabaseCluster(
            cluster_name=f"{self.name}-aurora",
            network=topology,
            security_boundary=boundary.resource,
            subnet_ids=topology.database_subnet_ids(network),
            security_group_id=boundary.output("security_group_id"),
            database_name=self.flags.database_name
        ), depends_on=[network, boundary])

        print(f"[DATABASE] Credentials resolve from the secret of {cluster.resource_id}")
        credentials = resolve_credentials(cluster, self.secret_store)
        return DatabaseStack(security_boundary=boundary, cluster=cluster, credentials=credentials)

    def compose_role(self, ctx: CompositionContext, bucket: ResourceHandle, queue: ResourceHandle,
                     network: Optional[ResourceHandle]) -> ResourceHandle:
        role = ComputeRole(role_name=f"{self.name}-lambda-role", description=f"Execution role of {self.name}")
        role.attach("s3", bucket_access_policy(bucket.output("arn")))
        role.attach("sqs", queue_consume_policy(queue.output("arn")))
        if network is not None:
            role.attach("vpc", vpc_access_policy())
        return ctx.add_resource("lambda-role", role, depends_on=[bucket, queue])

    def base_environment(self, bucket: ResourceHandle, database: Optional[DatabaseStack]) -> dict[str, Any]:
        if database is None:
            # not created: placeholders keep the variable set stable for Laravel
            db_host = db_username = db_password = NOT_CREATED
        else:
            db_host = database.cluster.output("endpoint")
            db_username = database.credentials.map(lambda c: c.username, label="DB_USERNAME")
            db_password = database.credentials.map(lambda c: c.password.get_secret_value(), label="DB_PASSWORD")

        return {
            "FILESYSTEM_DISK": "s3",
            "AWS_BUCKET": bucket.output("bucket_name"),
            "DB_DATABASE": self.flags.database_name,
            "DB_CONNECTION": "mysql",
            "DB_HOST": db_host,
            "DB_PORT": str(MYSQL_PORT),
            "DB_USERNAME": db_username,
            "DB_PASSWORD": db_password,
        }

    def vpc_config(self, network: Optional[ResourceHandle],
                   database: Optional[DatabaseStack]) -> Optional[AsyncValue[VpcConfig]]:
        """Functions join the VPC only where a security group exists, i.e. with the database"""
        if network is None or database is None:
            return None
        subnet_ids = network.resource.function_subnet_ids(network)
        security_group_id = database.security_boundary.output("security_group_id")
        return AsyncValue.combine(
            subnet_ids,
            security_group_id,
            lambda subnets, group: VpcConfig(subnet_ids=tuple(subnets), security_group_ids=(group,)),
            label="vpc_config"
        )

    def compute_units(self, queue: ResourceHandle) -> list[ComputeUnit]:
        if self.flags.use_octane:
            web = ComputeUnit(UNIT_WEB, self.name, OCTANE_HANDLER, (LayerName.RUNTIME,), 28,
                              {"BREF_LOOP_MAX": "250"})
        else:
            web = ComputeUnit(UNIT_WEB, self.name, FPM_HANDLER, (LayerName.FPM_RUNTIME,), 28)

        return [
            web,
            ComputeUnit(UNIT_ARTISAN, f"{self.name}-artisan", ARTISAN_HANDLER,
                        (LayerName.RUNTIME, LayerName.CLI), 720),
            ComputeUnit(UNIT_WORKER, f"{self.name}-worker", QUEUE_HANDLER, (LayerName.RUNTIME,), 60, {
                "QUEUE_CONNECTION": "sqs",
                "SQS_QUEUE": queue.output("url"),
            }),
        ]

    def compose_http_api(self, ctx: CompositionContext, web: ResourceHandle) -> ResourceHandle:
        api = ctx.add_resource("http-api", HttpApi(
            api_name=f"{self.name}-api",
            function_arn=web.output("arn"),
            description=f"HTTP API of {self.name}"
        ), depends_on=[web])
        ctx.add_resource("http-api-permission", InvokePermission(
            statement_id=f"{self.name}-api-invoke",
            function_name=web.output("function_name"),
            principal=API_GATEWAY_PRINCIPAL
        ), depends_on=[api])
        return api

    def compose_triggers(self, ctx: CompositionContext, functions: dict[str, ResourceHandle]) -> list[ResourceHandle]:
        stack = self.flags.stack_name
        triggers = []

        if self.flags.use_api_warmer:
            triggers.append(self._schedule(
                ctx, functions[UNIT_WEB], f"api-warmer-{stack}", self.flags.api_warm_rate,
                {"warmer": True}, "Schedule for keeping api warm"
            ))

        if self.flags.use_artisan_scheduler:
            triggers.append(self._schedule(
                ctx, functions[UNIT_ARTISAN], f"artisan-scheduler-{stack}", self.flags.artisan_schedule_rate,
                "schedule:run", "Schedule for running artisan commands"
            ))

        return triggers

    def _schedule(self, ctx: CompositionContext, target: ResourceHandle, rule_name: str, rate: str,
                  payload: Any, description: str) -> ResourceHandle:
        print(f"[SCHEDULE] {rule_name}: {rate} -> {target.resource_id}")
        rule = ctx.add_resource(rule_name, ScheduledTrigger(
            rule_name=rule_name,
            schedule_expression=rate,
            target_unit=target.resource_id,
            target_arn=target.output("arn"),
            payload=payload,
            description=description
        ), depends_on=[target])
        ctx.add_resource(f"{rule_name}-permission", InvokePermission(
            statement_id=f"{rule_name}-permission",
            function_name=target.output("function_name"),
            principal=EVENTS_PRINCIPAL,
            source_arn=rule.output("rule_arn")
        ), depends_on=[rule])
        return rule

    def build_exports(self, api: ResourceHandle, bucket: ResourceHandle, role: ResourceHandle,
                      queue: ResourceHandle, functions: dict[str, ResourceHandle],
                      network: Optional[ResourceHandle], database: Optional[DatabaseStack]) -> StackExports:
        values = {
            "apiUrl": api.output("api_url"),
            "bucketName": bucket.output("bucket_name"),
            "lambdaName": functions[UNIT_WEB].output("function_name"),
            "lambdaRoleArn": role.output("arn"),
            "consoleLambdaName": functions[UNIT_ARTISAN].output("function_name"),
            "workerLambdaName": functions[UNIT_WORKER].output("function_name"),
            "queueUrl": queue.output("url"),
            "useOctane": self.flags.use_octane,
        }

        if network is None:
            values["vpcId"] = NOT_CREATED
        else:
            values["vpcId"] = network.output("vpc_id")

        if database is None:
            values["auroraClusterId"] = NOT_CREATED
            values["auroraClusterEndpoint"] = NOT_CREATED
        else:
            values["auroraClusterId"] = database.cluster.output("cluster_id")
            values["auroraClusterEndpoint"] = database.cluster.output("endpoint")

        return StackExports(values)
