from __future__ import annotations

from buckled.profile.models import UserSessionData

DOCUMENT_PROMPT = """\
You are an expert automotive service analyzer. Analyze this document or image \
and extract ALL relevant information as a single JSON object.

Use null for missing values and never skip a field. Structure:

{
  "serviceInfo": {
    "primaryService": "main service performed, e.g. 'Oil Change', 'Brake Service'",
    "secondaryServices": ["additional services mentioned"],
    "category": "Maintenance, Brakes, Engine, Electrical, Transmission, ...",
    "urgencyLevel": "low|medium|high|emergency",
    "recommendedAction": "what the customer should do next",
    "confidence": 85
  },
  "vehicleInfo": {
    "year": 2020, "make": "Toyota", "model": "Camry", "vin": null,
    "mileage": 45000, "engineType": "4-cylinder", "transmission": "automatic",
    "color": null, "licensePlate": null, "confidence": 90
  },
  "pricing": {
    "partsTotal": 150.00, "laborTotal": 200.00, "subtotal": 350.00,
    "taxes": 28.00, "discounts": 0.00, "finalTotal": 378.00, "currency": "USD",
    "breakdown": [
      {"item": "Oil Filter", "quantity": 1, "unitPrice": 15.00, "total": 15.00,
       "category": "parts|labor|fee|tax|discount"}
    ],
    "confidence": 95
  },
  "shopInfo": {
    "name": null, "address": null, "city": null, "state": null, "zipCode": null,
    "phone": null, "email": null, "website": null, "technicianName": null,
    "shopLicense": null, "confidence": 80
  },
  "technicalInfo": {
    "diagnosticCodes": ["P0171"], "partNumbers": ["12345-ABC"],
    "serviceIntervals": 5000, "warrantyInfo": null,
    "recommendedMaintenance": ["inspect brakes"],
    "severity": "routine|recommended|needed|critical", "confidence": 75
  },
  "timeline": {
    "estimatedCompletionTime": "2-3 hours", "scheduledDate": null,
    "preferredDate": null, "dueDate": null, "isUrgent": false,
    "nextServiceDate": null, "confidence": 70
  },
  "extractedText": "all text found in the document"
}

Look for service orders, estimates, invoices and receipts; vehicle \
identification; every price and line item; shop contact details; diagnostic \
codes, part numbers and recommendations; dates, appointments and maintenance \
intervals; warranty details. Lower the confidence scores where text is unclear.
"""

TEXT_PROMPT = """\
You are an expert automotive service advisor. Correct any misspelled \
automotive terms first, then analyze the customer's description.

Original input: "{original}"
Pre-corrected input: "{corrected}"
Suggested service: "{suggested}"
{context}
Prefer standard service names: Oil Change, Brake Service, Brake Pad \
Replacement, Tire Rotation, Battery Replacement, AC Service, Vehicle \
Inspection, Tune Up, Transmission Service.

Answer with a single JSON object:

{{
  "serviceInfo": {{
    "primaryService": "corrected, standardized service name",
    "secondaryServices": ["related services that might be needed"],
    "category": "service category",
    "urgencyLevel": "low|medium|high|emergency (based on symptoms)",
    "recommendedAction": "what the customer should do next",
    "confidence": 85
  }},
  "userContext": {{
    "symptoms": [], "duration": null, "frequency": null,
    "drivingConditions": [], "recentServices": [], "concerns": [],
    "budget": {{"min": null, "max": null, "preferred": null}},
    "confidence": 80
  }},
  "vehicleInfo": {{
    "year": null, "make": null, "model": null, "mileage": null, "confidence": 60
  }},
  "technicalInfo": {{
    "diagnosticCodes": [], "severity": "routine|recommended|needed|critical",
    "recommendedMaintenance": [], "confidence": 70
  }},
  "timeline": {{
    "isUrgent": false, "estimatedCompletionTime": null, "confidence": 65
  }}
}}

Pay attention to symptom severity, urgency cues such as grinding, squealing \
or not starting, safety concerns, budget hints and timing.
"""

CONNECTION_PROMPT = "Reply with the single word OK."


def build_context_block(session: UserSessionData | None) -> str:
    if session is None:
        return ""
    location = session.location
    budget = session.preferences.budget_range
    categories = ", ".join(session.service_history.favorite_categories) or "none"
    return (
        "Customer context:\n"
        f"- Location: {location.city or 'unknown'}, {location.state or 'unknown'}\n"
        f"- Preferred budget: ${budget.min:.0f}-${budget.max:.0f}\n"
        f"- Service radius: {session.preferences.service_radius:g} miles\n"
        f"- Previous service categories: {categories}\n"
    )


def build_text_prompt(
    original: str,
    corrected: str,
    suggested: str,
    session: UserSessionData | None = None,
) -> str:
    return TEXT_PROMPT.format(
        original=original,
        corrected=corrected,
        suggested=suggested,
        context=build_context_block(session),
    )
