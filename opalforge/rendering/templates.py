from jinja2 import Environment

_env = Environment(autoescape=True)

CERTIFICATE_TEMPLATE = _env.from_string("""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>OpalForge Certificate {{ cert_id }}</title>
<style>
  @page { size: A4 landscape; margin: 0; }
  body { margin: 0; font-family: Helvetica, Arial, sans-serif; color: #1F2933; }
  .page { box-sizing: border-box; width: 297mm; height: 210mm; padding: 8mm; position: relative; }
  .frame { box-sizing: border-box; border: 1.5pt solid #3E4C59; height: 100%; text-align: center; }
  h1 { font-size: 22pt; margin: 28mm 0 8mm; }
  .cert-id { font-size: 16pt; }
  .label { font-size: 12pt; color: #616E7C; margin-top: 12mm; }
  .score { font-size: 28pt; font-weight: bold; color: {{ tier_color }}; margin-top: 3mm; }
  .band { display: inline-block; width: 90mm; padding: 2mm 0; border-radius: 2mm;
          background: {{ tier_color }}; color: #FFFFFF; font-weight: bold; font-size: 12pt; }
  .issued { font-size: 12pt; margin-top: 10mm; }
  .qr { position: absolute; left: 220mm; top: 130mm; width: 40mm; text-align: center; font-size: 9pt; color: #616E7C; }
  .qr img { width: 40mm; height: 40mm; display: block; }
  .footer { position: absolute; left: 0; right: 0; top: 192mm; font-size: 9pt; font-style: italic; }
</style>
</head>
<body>
<div class="page">
  <div class="frame">
    <h1>Certificate of Authenticity</h1>
    <div class="cert-id">ID: {{ cert_id }}</div>
    <div class="label">Confidence Score</div>
    <div class="score">{{ score }}</div>
    <div class="band tier-{{ tier }}">{{ tier_label }}</div>
    <div class="issued">Issued: {{ issued }}</div>
  </div>
  <div class="qr"><img src="{{ qr_data_uri }}" alt="Verification QR code">Scan to verify</div>
  <div class="footer">Issued by OpalForge</div>
</div>
</body>
</html>
""")
