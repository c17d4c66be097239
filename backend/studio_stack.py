from __future__ import annotations

from pathlib import Path
import secrets
import string

from aws_cdk import (
    DockerVolume,
    Duration,
    RemovalPolicy,
    Stack,
    Tags,
    CfnOutput,
    aws_apigateway as apigateway,
    aws_dynamodb as dynamodb,
    aws_lambda as lambda_,
    aws_lambda_python_alpha as lambda_python,
    aws_ssm as ssm,
)
from constructs import Construct


class GhosteStudioStack(Stack):
    """Serverless API for planning and submitting multi-segment Sora videos."""

    def __init__(self, scope: Construct, construct_id: str, *, stage: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self._stage = stage
        Tags.of(self).add("Stage", stage)

        project_root = Path(__file__).resolve().parents[1]
        lambda_src = Path(__file__).resolve().parent / "lambda_src"

        videos_table = dynamodb.Table(
            self,
            "StudioVideosTable",
            partition_key=dynamodb.Attribute(
                name="videoId",
                type=dynamodb.AttributeType.STRING,
            ),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            removal_policy=RemovalPolicy.RETAIN,
        )

        shared_layer = lambda_python.PythonLayerVersion(
            self,
            "SharedUtilitiesLayer",
            entry=str(lambda_src / "common_layer"),
            compatible_runtimes=[lambda_.Runtime.PYTHON_3_11],
            bundling=lambda_python.BundlingOptions(
                image=lambda_.Runtime.PYTHON_3_11.bundling_image,
                command=[
                    "bash",
                    "-c",
                    "mkdir -p /asset-output/python && cp -r /asset-input/python/. /asset-output/python",
                ],
            ),
        )

        function_bundling = lambda_python.BundlingOptions(
            image=lambda_.Runtime.PYTHON_3_11.bundling_image,
            command=[
                "bash",
                "-c",
                "mkdir -p /asset-output && cp -r /asset-input/. /asset-output && cp -r /project-src/ghostestudio /asset-output/ghostestudio && pip install --no-cache-dir pydantic requests PyYAML --target /asset-output --implementation cp --platform manylinux2014_x86_64 --python-version 3.11 --abi cp311 --only-binary=:all:",
            ],
            volumes=[
                DockerVolume(
                    host_path=str(project_root / "src"),
                    container_path="/project-src",
                )
            ],
        )

        openai_param_name = self.node.try_get_context("openaiApiKeyParameterName") or "/ghoste-studio/env/OPENAI_API_KEY"
        openai_param = ssm.StringParameter.from_secure_string_parameter_attributes(
            self,
            "OpenAIKeyParameter",
            parameter_name=openai_param_name,
        )

        base_environment = {
            "VIDEOS_TABLE_NAME": videos_table.table_name,
            "OPENAI_API_KEY_PARAMETER": openai_param_name,
            "DEFAULT_DRY_RUN": str(self.node.try_get_context("defaultDryRun") or "false").lower(),
            "SORA_ENABLED": str(self.node.try_get_context("soraEnabled") or "true").lower(),
            "STAGE": stage,
        }

        plan_lambda = self._function(
            "VideoPlanLambda",
            lambda_src,
            "video_plan/handler.py",
            function_bundling,
            shared_layer,
            {"STAGE": stage},
        )

        create_lambda = self._function(
            "VideoCreateLambda",
            lambda_src,
            "video_create/handler.py",
            function_bundling,
            shared_layer,
            base_environment,
            timeout=Duration.seconds(60),
        )
        videos_table.grant_write_data(create_lambda)
        openai_param.grant_read(create_lambda)

        status_lambda = self._function(
            "VideoStatusLambda",
            lambda_src,
            "video_status/handler.py",
            function_bundling,
            shared_layer,
            base_environment,
        )
        videos_table.grant_read_write_data(status_lambda)
        openai_param.grant_read(status_lambda)

        api = apigateway.RestApi(
            self,
            "StudioVideosApi",
            rest_api_name=f"Ghoste Studio Videos ({stage})",
            api_key_source_type=apigateway.ApiKeySourceType.HEADER,
            default_cors_preflight_options=apigateway.CorsOptions(
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_origins=apigateway.Cors.ALL_ORIGINS,
                allow_headers=["*"],
            ),
        )
        plan_resource = api.root.add_resource("plan")
        plan_resource.add_method("POST", apigateway.LambdaIntegration(plan_lambda), api_key_required=True)
        videos_resource = api.root.add_resource("videos")
        videos_resource.add_method("POST", apigateway.LambdaIntegration(create_lambda), api_key_required=True)
        video_resource = videos_resource.add_resource("{id}")
        video_resource.add_method("GET", apigateway.LambdaIntegration(status_lambda), api_key_required=True)

        api_key_value = self.node.try_get_context("studioApiKey") or "".join(
            secrets.choice(string.ascii_letters + string.digits)
            for _ in range(40)
        )
        api_key = apigateway.ApiKey(
            self,
            "StudioVideosApiKey",
            api_key_name=f"ghoste-studio-{stage}-{self.node.addr[:8]}",
            description="API key required to call the studio video endpoints",
            enabled=True,
            value=api_key_value,
        )
        usage_plan = api.add_usage_plan(
            "StudioVideosUsagePlan",
            name=f"ghoste-studio-{stage}",
            throttle=apigateway.ThrottleSettings(rate_limit=10, burst_limit=5),
        )
        usage_plan.add_api_stage(api=api, stage=api.deployment_stage)
        usage_plan.add_api_key(api_key)

        CfnOutput(self, "StudioVideosApiUrl", value=api.url)
        CfnOutput(
            self,
            "StudioVideosApiKeyOutput",
            value=api_key_value,
            description="API key value required by the studio video endpoints",
        )

    def _function(
        self,
        construct_id: str,
        lambda_src: Path,
        index: str,
        bundling: lambda_python.BundlingOptions,
        layer: lambda_python.PythonLayerVersion,
        environment: dict[str, str],
        timeout: Duration | None = None,
    ) -> lambda_python.PythonFunction:
        return lambda_python.PythonFunction(
            self,
            construct_id,
            entry=str(lambda_src),
            index=index,
            handler="handler",
            runtime=lambda_.Runtime.PYTHON_3_11,
            timeout=timeout or Duration.seconds(30),
            memory_size=256,
            environment=dict(environment),
            layers=[layer],
            bundling=bundling,
        )
