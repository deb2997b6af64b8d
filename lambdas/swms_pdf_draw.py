# Single A4 page drawn with ReportLab, signature embedded when it decodes
from aws_lambda_powertools.utilities.typing import LambdaContext

from lambdas.swms_render_draw import DrawnPdfRenderer
from lambdas.swms_submission import handle_submission, logger

renderer = DrawnPdfRenderer()


@logger.inject_lambda_context(clear_state=True)
def process(event: dict, context: LambdaContext) -> dict:
    return handle_submission(event, renderer)
