# No attachment; the submission is summarised in the email body
from aws_lambda_powertools.utilities.typing import LambdaContext

from lambdas.swms_render import SummaryRenderer
from lambdas.swms_submission import handle_submission, logger

renderer = SummaryRenderer()


@logger.inject_lambda_context(clear_state=True)
def process(event: dict, context: LambdaContext) -> dict:
    return handle_submission(event, renderer)
