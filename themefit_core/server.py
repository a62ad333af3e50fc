#!/usr/bin/env python3
import logging
from typing import Optional

from flask import Flask, request, jsonify
from flask_cors import CORS

from .adapter_store import AdapterStore
from .config import config
from .errors import PayloadError
from .payloads import PayloadDirectory

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

# Created on first request so importing the app does not touch the disk
store: Optional[AdapterStore] = None
payloads: Optional[PayloadDirectory] = None


def get_store() -> AdapterStore:
    global store
    if store is None:
        store = AdapterStore(ttl_seconds=config.cache_ttl_seconds)
    return store


def get_payloads() -> PayloadDirectory:
    global payloads
    if payloads is None:
        payloads = PayloadDirectory(config.payload_dir)
    return payloads


@app.route('/health', methods=['GET'])
def health_check():
    return jsonify({
        "status": "healthy",
        "version": "1.0.0",
        "adapters": get_store().stats(),
    })


@app.route('/api/adapters/<shop_id>/<fingerprint>', methods=['GET'])
def get_adapter(shop_id, fingerprint):
    adapter = get_store().load(shop_id, fingerprint)
    if adapter is None:
        return jsonify({"error": "Adapter not found"}), 404
    return jsonify(adapter.to_dict())


@app.route('/api/adapters/<shop_id>/<fingerprint>', methods=['DELETE'])
def invalidate_adapter(shop_id, fingerprint):
    get_store().invalidate(shop_id, fingerprint)
    return jsonify({"ok": True, "shop_id": shop_id, "fingerprint": fingerprint})


@app.route('/api/variant-data', methods=['GET'])
def variant_data():
    variant_id = (request.args.get('av') or '').strip()
    shop = (request.args.get('shop') or '').strip()
    if not variant_id or not shop:
        return jsonify({"error": "Missing av or shop parameter"}), 400
    try:
        payload = get_payloads().load(shop, variant_id)
    except PayloadError as e:
        logger.error(f"Broken payload for {shop}/{variant_id}: {e}")
        return jsonify({"error": "Payload unreadable"}), 500
    if payload is None:
        return jsonify({"error": "Variant not found"}), 404
    return jsonify(payload.to_dict())


def run_server():
    logger.info(f"Starting themefit API server on port {config.api_port}...")
    logger.info(f"Adapter database: {config.db_path}")
    logger.info(f"Payload directory: {config.payload_dir}")
    app.run(host='0.0.0.0', port=config.api_port, debug=config.enable_debug, use_reloader=False)


if __name__ == '__main__':
    run_server()
