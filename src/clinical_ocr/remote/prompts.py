"""Instruction templates sent with each remote extraction request."""

from __future__ import annotations

from types import MappingProxyType

from clinical_ocr.core.types import DocumentType

_FORM = """\
Extract the data from this medical form. Identify:
- Patient details (name, national ID, age, bed)
- Diagnoses and medical history
- Current medication
- Vital signs

Keep the document's original language. Return ONLY valid JSON:
{
  "patient": { "name": "", "dni": "", "age": "", "bed": "" },
  "clinicalHistory": "",
  "currentMedication": [],
  "vitalSigns": {},
  "diagnosis": []
}"""

_LAB_REPORT = """\
Extract the results of this laboratory report. Identify:
- Study type
- Date
- Results with values and units
- Out-of-range values

Keep the document's original language. Return ONLY valid JSON:
{
  "studyType": "",
  "date": "",
  "results": [{ "test": "", "value": "", "unit": "", "normalRange": "", "abnormal": false }]
}"""

_IMAGING_REPORT = """\
Extract the information in this imaging report. Identify:
- Study type
- Date
- Main findings
- Conclusions

Keep the document's original language. Return ONLY valid JSON:
{
  "studyType": "",
  "date": "",
  "findings": "",
  "conclusion": ""
}"""

_GENERIC = (
    "Transcribe the full text of this medical document verbatim, in its "
    "original language. Where the structure allows, group it into clinical "
    "sections. Return plain text only."
)

PROMPTS: MappingProxyType[DocumentType, str] = MappingProxyType(
    {
        DocumentType.FORM: _FORM,
        DocumentType.LAB_REPORT: _LAB_REPORT,
        DocumentType.IMAGING_REPORT: _IMAGING_REPORT,
        DocumentType.GENERIC: _GENERIC,
    }
)


def build_instruction(document_type: DocumentType) -> str:
    """Return the fixed instruction for a document type."""
    return PROMPTS[DocumentType.parse(document_type)]
