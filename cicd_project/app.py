import logging
import os

import aws_cdk as cdk
from aws_cdk import Environment
from cicd_project.configs.cicd_cfg import get_cfg
from cicd_project.stacks.cicd_stack import CICDStack

logging.basicConfig(
    level=os.environ.get("CICD_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = cdk.App()
cfg = get_cfg(app)

CICDStack(
    app,
    f"{cfg.prefix}-CICDStack",
    env=Environment(account=cfg.account_id, region=cfg.region),
    cfg=cfg,
)

app.synth()
