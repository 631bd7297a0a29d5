"""
Flask web interface for the Extension Builder Core.

This provides a REST API the block editor uses to turn a saved workspace into
App Inventor extension source, download it as a file, or request a build.
"""

from flask import Flask, request, jsonify, Response
from flask_cors import CORS
from typing import Any, Dict
import logging

# Allow running this file directly from a checkout
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from extension_builder_core import (
    GeneratorConfig, GraphError, NodeRegistry, ExtensionAssembler,
    load_workspace, source_file_path, build_extension, __version__
)


logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

# Global instances
registry = NodeRegistry.default()
config = GeneratorConfig.from_env()
assembler = ExtensionAssembler(registry, config)


def _workspace_from_request() -> Dict[str, Any]:
    """Workspace document from the JSON body; raises GraphError if absent."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or 'workspace' not in payload:
        raise GraphError("Request body must be a JSON object with a 'workspace' member")
    return payload['workspace']


@app.route('/api/ping', methods=['GET'])
def ping():
    """Liveness check."""
    return jsonify({
        'success': True,
        'message': os.environ.get('PING_MESSAGE', 'ping'),
        'version': __version__
    })


@app.route('/api/blocks', methods=['GET'])
def get_blocks():
    """List the supported block kinds, grouped by palette."""
    try:
        query = request.args.get('q', '').strip()
        if query:
            definitions = registry.search(query, limit=int(request.args.get('limit', 50)))
            return jsonify({
                'success': True,
                'data': [d.to_dict() for d in definitions]
            })

        palettes = {
            palette: [d.to_dict() for d in definitions]
            for palette, definitions in registry.by_palette().items()
        }
        return jsonify({
            'success': True,
            'data': palettes,
            'count': len(registry)
        })
    except ValueError as e:
        return jsonify({
            'success': False,
            'error': str(e)
        }), 400
    except Exception as e:
        logger.exception("Failed to list blocks")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@app.route('/api/generate', methods=['POST'])
def generate():
    """Generate extension source from a workspace."""
    try:
        graph = load_workspace(_workspace_from_request(), registry)
        code = assembler.generate(graph)
        warnings = [str(error) for error in graph.validate_graph()]
        return jsonify({
            'success': True,
            'code': code,
            'path': source_file_path(graph, config),
            'warnings': warnings
        })
    except GraphError as e:
        return jsonify({
            'success': False,
            'error': str(e),
            'details': e.details
        }), 400
    except Exception as e:
        logger.exception("Generation failed")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@app.route('/api/download', methods=['POST'])
def download():
    """Generate extension source and return it as a .java attachment."""
    try:
        graph = load_workspace(_workspace_from_request(), registry)
        code = assembler.generate(graph)
        path = source_file_path(graph, config)
        filename = path.rsplit('/', 1)[-1]
        return Response(
            code,
            mimetype='text/x-java-source',
            headers={
                'Content-Disposition': f'attachment; filename="{filename}"',
                'X-Source-Path': path
            }
        )
    except GraphError as e:
        return jsonify({
            'success': False,
            'error': str(e),
            'details': e.details
        }), 400
    except Exception as e:
        logger.exception("Download failed")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@app.route('/api/build', methods=['POST'])
def build():
    """Check whether the generated source could be packaged into an .aix."""
    try:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            raise GraphError("Request body must be a JSON object")
        source = payload.get('source')
        if not source:
            graph = load_workspace(_workspace_from_request(), registry)
            source = assembler.generate(graph)
        libraries = payload.get('libraries') or []
        if not isinstance(libraries, list):
            raise GraphError("'libraries' must be a list")

        result = build_extension(source, [str(name) for name in libraries])
        response = result.to_dict()
        if not result.success:
            response['error'] = result.message
        return jsonify(response), result.status
    except GraphError as e:
        return jsonify({
            'success': False,
            'error': str(e),
            'details': e.details
        }), 400
    except Exception as e:
        logger.exception("Build failed")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.DEBUG if os.environ.get('EXTBUILDER_DEBUG', '0') == '1' else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    host = os.environ.get('EXTBUILDER_HOST', '0.0.0.0')
    port = int(os.environ.get('EXTBUILDER_PORT', '5002'))

    print("Starting Extension Builder Web Interface...")
    print(f"Access the API at: http://localhost:{port}/api/ping")

    app.run(
        debug=os.environ.get('EXTBUILDER_DEBUG', '0') == '1',
        host=host,
        port=port,
    )
