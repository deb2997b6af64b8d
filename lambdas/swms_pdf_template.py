# HTML template printed to A4 by headless Chromium
from aws_lambda_powertools.utilities.typing import LambdaContext

from lambdas.swms_render_template import TemplatePdfRenderer
from lambdas.swms_submission import handle_submission, logger

renderer = TemplatePdfRenderer()


@logger.inject_lambda_context(clear_state=True)
def process(event: dict, context: LambdaContext) -> dict:
    return handle_submission(event, renderer)
