import logging

from pydantic import ValidationError
from quart import Blueprint, current_app, jsonify, request
from quart_schema import document_request, document_response
from werkzeug.exceptions import BadRequest

from .schemas import CreateSaleRequest, ErrorResponse, InvalidRequestResponse, SaleResponse, ServerErrorResponse

_logger = logging.getLogger(__name__)

bp = Blueprint("sales", __name__)

HANDLER_KEY = "sale_handler"


@bp.post("/sales")
@document_request(CreateSaleRequest)
@document_response(SaleResponse, 201)
@document_response(InvalidRequestResponse, 400)
@document_response(ServerErrorResponse, 500)
async def create_sale():
    """Create a new sale with a date, product, client, and quantity."""
    try:
        data = await request.get_json(force=True)
    except BadRequest:
        _logger.info("Rejected create-sale request, body is not JSON")
        return jsonify(ErrorResponse(message="Request body must be valid JSON").model_dump()), 400
    _logger.info("Received request to create sale | body=%s", data)
    # Non-object JSON (null, arrays, scalars) fails the schema check below
    try:
        sale_request = CreateSaleRequest.model_validate(data)
    except ValidationError as e:
        body = InvalidRequestResponse(
            message="Invalid sale request",
            errors=e.errors(include_url=False, include_context=False),
        )
        return jsonify(body.model_dump()), 400

    handler = current_app.extensions[HANDLER_KEY]
    result = await handler.create_sale(sale_request)
    return jsonify(result.body), result.status_code
