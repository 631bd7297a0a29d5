"""
Tests for the REST API.
"""

import pytest

from extension_builder_core import artifacts
from web_interface.app import app


ROOT_BLOCK = {
    "type": "ai2_extension",
    "id": "root",
    "fields": {"PACKAGE": "com.example.ext", "CLASSNAME": "Demo"},
}


@pytest.fixture
def client():
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


def workspace(*blocks):
    return {"workspace": {"blocks": {"languageVersion": 0, "blocks": list(blocks)}}}


class TestPing:

    def test_ping(self, client):
        response = client.get('/api/ping')
        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert data['message'] == 'ping'
        assert data['version'] == '0.1.0'

    def test_ping_message_from_environment(self, client, monkeypatch):
        monkeypatch.setenv('PING_MESSAGE', 'pong')
        assert client.get('/api/ping').get_json()['message'] == 'pong'


class TestBlocks:

    def test_grouped_by_palette(self, client):
        data = client.get('/api/blocks').get_json()
        assert data['success'] is True
        assert 'Control' in data['data']
        assert data['count'] == sum(len(items) for items in data['data'].values())

    def test_search(self, client):
        data = client.get('/api/blocks?q=crypto').get_json()
        assert [d['type'] for d in data['data']] == ['crypto_hash']

    def test_bad_limit(self, client):
        response = client.get('/api/blocks?q=text&limit=lots')
        assert response.status_code == 400
        assert response.get_json()['success'] is False


class TestGenerate:

    def test_generate(self, client):
        response = client.post('/api/generate', json=workspace(ROOT_BLOCK))
        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert "package com.example.ext;" in data['code']
        assert data['path'] == "com/example/ext/Demo.java"
        assert data['warnings'] == []

    def test_generate_without_root(self, client):
        data = client.post('/api/generate', json=workspace()).get_json()
        assert data['code'] == "// Add an 'AI2 Extension' block to begin"
        assert data['path'] == "Extension.java"

    def test_missing_workspace(self, client):
        response = client.post('/api/generate', json={"blocks": []})
        assert response.status_code == 400
        assert response.get_json()['success'] is False

    def test_malformed_workspace(self, client):
        response = client.post('/api/generate', json=workspace({"id": "no-type"}))
        assert response.status_code == 400
        assert response.get_json()['details'] == {'block_id': 'no-type'}


class TestDownload:

    def test_download(self, client):
        response = client.post('/api/download', json=workspace(ROOT_BLOCK))
        assert response.status_code == 200
        assert response.mimetype == 'text/x-java-source'
        assert response.headers['Content-Disposition'] == 'attachment; filename="Demo.java"'
        assert response.headers['X-Source-Path'] == "com/example/ext/Demo.java"
        assert "public class Demo" in response.get_data(as_text=True)


class TestBuild:

    def test_build_without_compiler(self, client, monkeypatch):
        monkeypatch.setattr(artifacts.shutil, "which", lambda name: None)
        response = client.post('/api/build', json=workspace(ROOT_BLOCK))
        assert response.status_code == 501
        data = response.get_json()
        assert data['success'] is False
        assert 'javac' in data['error']

    def test_build_reports_missing_libraries(self, client, monkeypatch, tmp_path):
        monkeypatch.setattr(artifacts.shutil, "which", lambda name: "/usr/bin/javac")
        monkeypatch.setenv('EXTBUILDER_LIB_DIR', str(tmp_path))
        response = client.post('/api/build', json={"source": "class A {}", "libraries": []})
        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert 'error' not in data

    def test_libraries_must_be_a_list(self, client):
        response = client.post('/api/build', json={"source": "class A {}", "libraries": "a.jar"})
        assert response.status_code == 400

    def test_body_must_be_an_object(self, client):
        response = client.post('/api/build', json=[1, 2])
        assert response.status_code == 400
