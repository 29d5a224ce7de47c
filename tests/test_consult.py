import io

import httpx

import consult
from conftest import BATCH_YAML
from test_consulta import RESPOSTA, comp_nfse, consultar_lote_rps_resposta
from test_transport import soap_response
from transport import NfseClient


def write_input(tmp_path):
    path = tmp_path / "input.yml"
    text = BATCH_YAML.replace("  - id: 1234\n", "  - id: 1234\n    nome_arquivo: ACME_1234\n")
    path.write_text(text, encoding="utf-8")
    return str(path)


def mock_service(monkeypatch, resposta):
    sent = []

    def handler(request):
        sent.append(request)
        return httpx.Response(200, text=soap_response(resposta))

    def mock_client(production=False, cert_path=None):
        return NfseClient(production=production, cert_path=cert_path,
                          transport=httpx.MockTransport(handler))

    monkeypatch.setattr(consult, "NfseClient", mock_client)
    return sent


def test_ask_protocolo():
    stdout = io.StringIO()
    assert consult.ask_protocolo(True, stdin=io.StringIO("0001234567\n"), stdout=stdout) == "0001234567"
    assert stdout.getvalue() == "Digite o número de protocolo no ambiente de PRODUÇÃO: "


def test_invoices_are_saved_by_record_name(tmp_path, monkeypatch):
    sent = mock_service(monkeypatch, RESPOSTA)
    output = tmp_path / "out"

    code = consult.main([write_input(tmp_path), "--protocolo", "0001234567", "--output", str(output)])

    assert code == 0
    assert b"<Protocolo>0001234567</Protocolo>" in sent[0].content
    assert b"<Cnpj>cnpj_prestador</Cnpj>" in sent[0].content
    # without nome_arquivo the record id names the file
    assert sorted(p.name for p in output.iterdir()) == ["5678_NFS.xml", "ACME_1234_NFS.xml"]
    assert b"<Numero>201</Numero>" in (output / "ACME_1234_NFS.xml").read_bytes()


def test_protocolo_is_prompted(tmp_path, monkeypatch):
    sent = mock_service(monkeypatch, RESPOSTA)
    monkeypatch.setattr("sys.stdin", io.StringIO("999\n"))

    code = consult.main([write_input(tmp_path), "--output", str(tmp_path / "out")])

    assert code == 0
    assert b"<Protocolo>999</Protocolo>" in sent[0].content


def test_unmatched_invoice_is_reported(tmp_path, monkeypatch):
    mock_service(monkeypatch, consultar_lote_rps_resposta(comp_nfse("300", "outro", "outra", "1.00")))
    output = tmp_path / "out"

    code = consult.main([write_input(tmp_path), "--protocolo", "1", "--output", str(output)])

    assert code == 1
    assert [p.name for p in output.iterdir()] == ["NFS_300_sem_rps.xml"]


def test_empty_response(tmp_path, monkeypatch):
    mock_service(monkeypatch, consultar_lote_rps_resposta())
    assert consult.main([write_input(tmp_path), "--protocolo", "1", "--output", str(tmp_path / "out")]) == 1


def test_bad_input_file(tmp_path):
    assert consult.main([str(tmp_path / "missing.yml"), "--protocolo", "1"]) == 2
