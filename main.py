from flask import Flask, request, jsonify
from flask_cors import CORS
from decimal import Decimal
from billing_engine import BillingEngineError, ConfigNotFound
from billing_engine.processor import calculate_from_snapshot, rounding_from_env
import json
import os
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")
ROUNDING = rounding_from_env()

app = Flask(__name__)

# Enable CORS for all routes
CORS(app)


def error_status(error: BillingEngineError) -> int:
    """HTTP status for an engine error: 404 no billing yet, 422 bad data, 400 bad input."""
    if isinstance(error, ConfigNotFound):
        return 404
    if error.is_data_defect:
        return 422
    return 400


@app.route("/api", methods=["GET"])
def api_info():
    """API information endpoint"""
    return jsonify({
        "status": "ok",
        "message": "Concession Billing Engine API",
        "version": "1.0",
        "endpoints": {
            "calculate": "/calculate [POST]",
            "health": "/health [GET]"
        }
    }), 200


@app.route("/health", methods=["GET"])
def health():
    """Health check for monitoring"""
    return jsonify({"status": "healthy", "environment": ENVIRONMENT}), 200


@app.route("/calculate", methods=["POST"])
def calculate():
    """
    Calculate the payment owed for one period from a request snapshot
    """
    try:
        raw = request.get_data(as_text=True)
        if not raw:
            return jsonify({
                "error": "No input data provided",
                "status": "failed"
            }), 400

        # Amounts must reach the engine as exact decimals, never floats
        input_data = json.loads(raw, parse_float=Decimal)

        contract_id = input_data.get("contractId", "Unknown")
        logger.info(f"Calculating payment for contract: {contract_id}")

        result = calculate_from_snapshot(input_data, rounding=ROUNDING)

        logger.info(f"Payment calculated for contract {contract_id}: {result['finalAmount']}")

        return jsonify(result), 200

    except BillingEngineError as e:
        logger.warning(f"Calculation rejected: {e.code} {e.message}")
        return jsonify({**e.to_dict(), "status": "failed"}), error_status(e)

    except (ValueError, KeyError, TypeError, AttributeError) as e:
        # Malformed JSON or missing fields
        logger.error(f"Validation error: {str(e)}")
        return jsonify({
            "error": f"Validation error: {str(e)}",
            "status": "validation_failed"
        }), 400

    except Exception as e:
        # Unexpected errors
        logger.error(f"Processing error: {str(e)}", exc_info=True)
        return jsonify({
            "error": "An unexpected error occurred during processing",
            "status": "failed"
        }), 500


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)
