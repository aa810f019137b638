from flask import Blueprint, request, current_app
from app.services.document_analysis import analyze_document
from app.utils.auth import require_company
from app.utils.errors import ApiError
from app.utils.responses import success

bp = Blueprint('documents', __name__)

@bp.route('/analyze', methods=['POST'])
@require_company
def analyze():
    """
    Classify a document image and extract its fields with the vision model
    ---
    tags:
      - Documents
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - file_url
            properties:
              file_url:
                type: string
                description: Publicly reachable image URL
              file_name:
                type: string
    responses:
      200:
        description: document_type, extracted_data and confidence
      400:
        description: Missing file_url
      502:
        description: Analysis failed (bad API key, quota, model error)
    """
    data = request.get_json() or {}
    file_url = data.get('file_url')
    if not file_url:
        raise ApiError('file_url is required')

    result = analyze_document(file_url, data.get('file_name'))
    current_app.logger.info(f"Analyzed document as {result['document_type']} ({result['confidence']})")
    return success(result)
