import json

import httpx
from click.testing import CliRunner

from opalforge.commands.certificate import certificate

CERTIFICATE = {
    "certId": "OF-1001",
    "confidence": 91.2,
    "timestamp": "2026-10-19T10:00:00.000Z",
    "qrPayload": "https://opalforge.app/verify/OF-1001",
    "status": "active",
}


def test_issue_success(mocker):
    """Test `certificate issue` successful case."""
    mock_post = mocker.patch("httpx.post")
    mock_post.return_value.status_code = 201

    runner = CliRunner()
    result = runner.invoke(certificate, ["issue", "--cert-id", "OF-1001", "--confidence", "91.2"])

    assert result.exit_code == 0
    assert "Certificate OF-1001 issued successfully!" in result.output
    sent_json = mock_post.call_args.kwargs["json"]
    assert sent_json == {"certId": "OF-1001", "confidence": 91.2}


def test_issue_sends_optional_fields(mocker):
    mock_post = mocker.patch("httpx.post")
    mock_post.return_value.status_code = 201

    runner = CliRunner()
    runner.invoke(
        certificate,
        [
            "issue", "--cert-id", "OF-1", "--confidence", "40",
            "--timestamp", "2026-01-01T00:00:00Z", "--qr-payload", "token",
            "--server-url", "http://certs.local/",
        ],
    )

    assert mock_post.call_args.args[0] == "http://certs.local/certificate"
    sent_json = mock_post.call_args.kwargs["json"]
    assert sent_json["timestamp"] == "2026-01-01T00:00:00Z"
    assert sent_json["qrPayload"] == "token"


def test_issue_conflict(mocker):
    """Test `certificate issue` when the ID is taken."""
    mock_post = mocker.patch("httpx.post")
    mock_post.return_value.status_code = 409

    runner = CliRunner()
    result = runner.invoke(certificate, ["issue", "--cert-id", "OF-1001", "--confidence", "91.2"])

    assert result.exit_code == 0
    assert "Certificate OF-1001 already exists." in result.output


def test_issue_validation_error(mocker):
    mock_post = mocker.patch("httpx.post")
    mock_post.return_value.status_code = 400
    mock_post.return_value.json.return_value = {"status": "error", "message": "Invalid request. confidence: bad"}

    runner = CliRunner()
    result = runner.invoke(certificate, ["issue", "--cert-id", "OF-1001", "--confidence", "91.2"])

    assert "Failed to issue certificate: Invalid request. confidence: bad" in result.output


def test_issue_http_error(mocker):
    """Test `certificate issue` with a connection error."""
    mock_post = mocker.patch("httpx.post")
    mock_post.side_effect = httpx.RequestError("Connection error", request=mocker.MagicMock())

    runner = CliRunner()
    result = runner.invoke(certificate, ["issue", "--cert-id", "OF-1001", "--confidence", "91.2"])

    assert result.exit_code == 0
    assert "HTTP request error while issuing certificate" in result.output


def test_verify_pretty(mocker):
    """Test `certificate verify` pretty prints the certificate."""
    mock_get = mocker.patch("httpx.get")
    mock_get.return_value.text = json.dumps(CERTIFICATE)
    mock_get.return_value.raise_for_status.return_value = None

    runner = CliRunner()
    result = runner.invoke(certificate, ["verify", "--cert-id", "OF-1001"])

    assert result.exit_code == 0
    assert json.loads(result.output) == CERTIFICATE


def test_verify_raw(mocker):
    mock_get = mocker.patch("httpx.get")
    raw_json = json.dumps(CERTIFICATE, separators=(",", ":"))
    mock_get.return_value.text = raw_json
    mock_get.return_value.raise_for_status.return_value = None

    runner = CliRunner()
    result = runner.invoke(certificate, ["verify", "--cert-id", "OF-1001", "--raw"])

    assert result.output.strip() == raw_json


def test_verify_not_found(mocker):
    """Test `certificate verify` reports the server's message on 404."""
    mock_response = mocker.MagicMock()
    mock_response.status_code = 404
    mock_response.json.return_value = {"status": "error", "error": "NotFoundError", "message": "Certificate 'X' not found."}

    mock_get = mocker.patch("httpx.get")
    mock_get.side_effect = httpx.HTTPStatusError("Not Found", request=mocker.MagicMock(), response=mock_response)

    runner = CliRunner()
    result = runner.invoke(certificate, ["verify", "--cert-id", "X"])

    assert "Failed to verify certificate: HTTP 404." in result.output
    assert "Details: Certificate 'X' not found." in result.output


def test_exists(mocker):
    mock_head = mocker.patch("httpx.head")
    mock_head.return_value.status_code = 200

    runner = CliRunner()
    result = runner.invoke(certificate, ["exists", "--cert-id", "OF-1001"])

    assert result.exit_code == 0
    assert "Certificate OF-1001 exists." in result.output


def test_exists_missing_exits_non_zero(mocker):
    mock_head = mocker.patch("httpx.head")
    mock_head.return_value.status_code = 404

    runner = CliRunner()
    result = runner.invoke(certificate, ["exists", "--cert-id", "missing"])

    assert result.exit_code == 1
    assert "Certificate missing not found." in result.output


def test_pdf_uses_server_filename(mocker, tmp_path):
    """Test `certificate pdf` saves under the filename from Content-Disposition."""
    mock_get = mocker.patch("httpx.get")
    mock_get.return_value.content = b"%PDF-1.4"
    mock_get.return_value.headers = {"content-disposition": 'attachment; filename="OpalForge_Cert_OF-1001.pdf"'}
    mock_get.return_value.raise_for_status.return_value = None

    runner = CliRunner()
    with runner.isolated_filesystem(temp_dir=tmp_path) as workdir:
        result = runner.invoke(certificate, ["pdf", "--cert-id", "OF-1001", "--confidence", "72"])

        assert result.exit_code == 0
        assert "Certificate PDF saved to OpalForge_Cert_OF-1001.pdf" in result.output
        with open(f"{workdir}/OpalForge_Cert_OF-1001.pdf", "rb") as f:
            assert f.read() == b"%PDF-1.4"

    assert mock_get.call_args.kwargs["params"] == {"confidence": 72.0}


def test_pdf_to_output_file(mocker, tmp_path):
    mock_get = mocker.patch("httpx.get")
    mock_get.return_value.content = b"%PDF-1.4"
    mock_get.return_value.headers = {}
    mock_get.return_value.raise_for_status.return_value = None

    output_file = tmp_path / "cert.pdf"
    runner = CliRunner()
    result = runner.invoke(
        certificate, ["pdf", "--cert-id", "OF-1001", "--qr-data", "token", "--output", str(output_file)]
    )

    assert result.exit_code == 0
    assert output_file.read_bytes() == b"%PDF-1.4"
    assert mock_get.call_args.kwargs["params"] == {"qrData": "token"}


def test_qr_download(mocker, tmp_path):
    mock_get = mocker.patch("httpx.get")
    mock_get.return_value.content = b"\x89PNG"
    mock_get.return_value.raise_for_status.return_value = None

    output_file = tmp_path / "qr.png"
    runner = CliRunner()
    result = runner.invoke(certificate, ["qr", "--cert-id", "OF-1001", "-o", str(output_file)])

    assert result.exit_code == 0
    assert f"QR code saved to {output_file}" in result.output
    assert output_file.read_bytes() == b"\x89PNG"


def test_cert_id_is_quoted_in_urls(mocker):
    """Test that ids with reserved URL characters address the certificate, not another route."""
    mock_get = mocker.patch("httpx.get")
    mock_get.return_value.text = json.dumps(CERTIFICATE)
    mock_get.return_value.raise_for_status.return_value = None
    mock_head = mocker.patch("httpx.head")
    mock_head.return_value.status_code = 200

    runner = CliRunner()
    runner.invoke(certificate, ["verify", "--cert-id", "a/b?c#d", "--server-url", "http://certs.local"])
    runner.invoke(certificate, ["exists", "--cert-id", "a/b?c#d", "--server-url", "http://certs.local"])

    assert mock_get.call_args.args[0] == "http://certs.local/certificate/a%2Fb%3Fc%23d"
    assert mock_head.call_args.args[0] == "http://certs.local/certificate/a%2Fb%3Fc%23d"


def test_pdf_and_qr_quote_cert_id(mocker, tmp_path):
    mock_get = mocker.patch("httpx.get")
    mock_get.return_value.content = b"x"
    mock_get.return_value.headers = {}
    mock_get.return_value.raise_for_status.return_value = None

    runner = CliRunner()
    runner.invoke(certificate, ["pdf", "--cert-id", "a/b", "-o", str(tmp_path / "c.pdf"), "--server-url", "http://certs.local"])
    assert mock_get.call_args.args[0] == "http://certs.local/certificate/a%2Fb/pdf"

    runner.invoke(certificate, ["qr", "--cert-id", "a/b", "-o", str(tmp_path / "c.png"), "--server-url", "http://certs.local"])
    assert mock_get.call_args.args[0] == "http://certs.local/qr/a%2Fb"


def test_pdf_prefers_utf8_filename(mocker, tmp_path):
    """Test that the exact UTF-8 filename from Content-Disposition is used when present."""
    mock_get = mocker.patch("httpx.get")
    mock_get.return_value.content = b"%PDF-1.4"
    mock_get.return_value.headers = {
        "content-disposition": "attachment; filename=\"OpalForge___-1.pdf\"; filename*=UTF-8''OpalForge_%E8%AF%81%E4%B9%A6-1.pdf"
    }
    mock_get.return_value.raise_for_status.return_value = None

    runner = CliRunner()
    with runner.isolated_filesystem(temp_dir=tmp_path):
        result = runner.invoke(certificate, ["pdf", "--cert-id", "证书-1", "--confidence", "72"])

        assert result.exit_code == 0
        assert "Certificate PDF saved to OpalForge_证书-1.pdf" in result.output
