"""Trusted evidence corpus and demo inputs.

Run ``python -m misinfo_guard.seed`` to load both into PostgreSQL; the
in-memory backend reads them directly from this module.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List

from . import db
from .config import Settings
from .models import ExampleInput, SourceDocument
from .observability import configure_logging

logger = logging.getLogger("seed")

_SOURCE_DOCUMENTS = (
    {
        "title": "Antibiotics: When they can and can't help",
        "organization": "CDC",
        "url": "https://www.cdc.gov/antibiotic-use/",
        "content": (
            "Antibiotics fight infections caused by bacteria. They do not work against "
            "infections caused by viruses, which cause colds, flu, most sore throats, "
            "bronchitis, and many sinus and ear infections. Taking antibiotics when they are "
            "not needed increases the risk of antibiotic resistance."
        ),
        "category": "antibiotics",
    },
    {
        "title": "Vaccine Safety: Scientific Review",
        "organization": "WHO",
        "url": "https://www.who.int/vaccine_safety/en/",
        "content": (
            "Vaccines are thoroughly tested before being licensed for use. They continue to be "
            "monitored for safety after they are in use. Extensive research has shown no link "
            "between vaccines and autism. This claim originated from a fraudulent study that "
            "was retracted and the author lost their medical license."
        ),
        "category": "vaccines",
    },
    {
        "title": "MMR Vaccine and Autism: The Evidence",
        "organization": "CDC",
        "url": "https://www.cdc.gov/vaccinesafety/",
        "content": (
            "Many studies have looked at whether there is a link between vaccines and autism "
            "spectrum disorder (ASD). None have found such a link. The evidence is clear: "
            "vaccines do not cause autism. This has been confirmed by multiple independent "
            "research groups worldwide."
        ),
        "category": "vaccines",
    },
    {
        "title": "Common Cold: Treatment and Prevention",
        "organization": "NHS",
        "url": "https://www.nhs.uk/conditions/common-cold/",
        "content": (
            "There is no cure for a cold, and antibiotics will not help. Rest, drink plenty of "
            "fluids, and use over-the-counter remedies to ease symptoms. See a GP if symptoms "
            "worsen or don't improve after 3 weeks. Antibiotics are not effective against "
            "viral infections like the common cold."
        ),
        "category": "viral",
    },
    {
        "title": "Type 1 Diabetes: Facts",
        "organization": "NHS",
        "url": "https://www.nhs.uk/conditions/type-1-diabetes/",
        "content": (
            "Type 1 diabetes is a lifelong condition where the pancreas doesn't produce insulin. "
            "It cannot be prevented and cannot be cured. It is not caused by lifestyle factors. "
            "People with type 1 diabetes need insulin injections to survive. Diet alone cannot "
            "cure or reverse type 1 diabetes."
        ),
        "category": "chronic",
    },
    {
        "title": "Blood Pressure Medication Guidelines",
        "organization": "CDC",
        "url": "https://www.cdc.gov/bloodpressure/",
        "content": (
            "High blood pressure usually has no symptoms. Blood pressure medication helps keep "
            "blood pressure at a healthy level but does not cure hypertension. Stopping "
            "medication without medical guidance can cause blood pressure to rise again, "
            "increasing risk of heart attack and stroke."
        ),
        "category": "chronic",
    },
    {
        "title": "Infant Feeding and Hydration",
        "organization": "WHO",
        "url": "https://www.who.int/health-topics/infant-nutrition",
        "content": (
            "Babies under 6 months should be exclusively breastfed or given infant formula. "
            "They should not be given water, as their kidneys are not mature enough. Even in "
            "hot weather, breast milk or formula provides all the hydration needed. Giving "
            "water to young infants can be dangerous."
        ),
        "category": "pediatrics",
    },
    {
        "title": "Cancer Treatment: Evidence-Based Approaches",
        "organization": "WHO",
        "url": "https://www.who.int/health-topics/cancer",
        "content": (
            "Cancer treatment should be based on scientific evidence. There is no proven "
            "'natural cure' or special diet that can cure cancer. Treatments like chemotherapy, "
            "radiation, and surgery have been proven effective through rigorous clinical "
            "trials. Delaying proven treatment in favor of unproven alternatives can be "
            "life-threatening."
        ),
        "category": "cancer",
    },
    {
        "title": "Essential Oils: Safety Information",
        "organization": "NHS",
        "url": "https://www.nhs.uk/",
        "content": (
            "Essential oils should not be used as a substitute for prescribed medications or "
            "medical treatment. They are not antibiotics and cannot treat bacterial infections. "
            "Some essential oils can cause skin irritation or allergic reactions. Always "
            "consult a healthcare provider before using essential oils for health purposes."
        ),
        "category": "alternative",
    },
    {
        "title": "COVID-19 Vaccine Safety",
        "organization": "WHO",
        "url": "https://www.who.int/emergencies/diseases/novel-coronavirus-2019/covid-19-vaccines",
        "content": (
            "COVID-19 vaccines do not modify your DNA. mRNA vaccines work by teaching cells to "
            "make a protein that triggers an immune response. The mRNA never enters the cell "
            "nucleus where DNA is stored. After the immune response is triggered, the mRNA "
            "breaks down and is eliminated by the body."
        ),
        "category": "vaccines",
    },
)

_EXAMPLE_INPUTS = (
    {
        "title": "Antibiotics for Cold",
        "content": (
            "You should take antibiotics when you have a cold. They'll help you get better "
            "faster and prevent it from getting worse."
        ),
        "category": "antibiotics",
        "expected_severity": "high",
    },
    {
        "title": "Vaccines and Autism",
        "content": (
            "Studies have proven that childhood vaccines, especially MMR, cause autism in "
            "children. Many parents have noticed changes in their children after vaccination."
        ),
        "category": "vaccines",
        "expected_severity": "high",
    },
    {
        "title": "Miracle Cancer Cure",
        "content": (
            "Drinking alkaline water and taking high-dose vitamin C can cure any type of cancer "
            "naturally without chemotherapy or radiation."
        ),
        "category": "cancer",
        "expected_severity": "critical",
    },
    {
        "title": "Blood Pressure Medication",
        "content": (
            "Once your blood pressure is normal on medication, you can stop taking it because "
            "you're cured. The medication fixed the underlying problem."
        ),
        "category": "chronic",
        "expected_severity": "critical",
    },
    {
        "title": "Baby Hydration",
        "content": (
            "Babies under 6 months should drink extra water, especially in hot weather, to "
            "prevent dehydration."
        ),
        "category": "pediatrics",
        "expected_severity": "high",
    },
)


def source_documents() -> List[SourceDocument]:
    return [SourceDocument(id=index, **item) for index, item in enumerate(_SOURCE_DOCUMENTS, start=1)]


def example_inputs() -> List[ExampleInput]:
    return [ExampleInput(id=index, **item) for index, item in enumerate(_EXAMPLE_INPUTS, start=1)]


async def seed_database(dsn: str) -> int:
    """Insert the corpus and examples unless the corpus table already has rows."""
    pool = await db.create_pool(dsn)
    try:
        existing = await db.count_source_documents(pool)
        if existing:
            logger.info("seed_skipped", extra={"status": "already_seeded"})
            return 0
        documents = source_documents()
        await db.insert_source_documents(pool, documents)
        await db.insert_example_inputs(pool, example_inputs())
        logger.info("seed_completed", extra={"status": "seeded"})
        return len(documents)
    finally:
        await pool.close()


def main() -> None:
    configure_logging("misinfo-guard-seed")
    settings = Settings()
    asyncio.run(seed_database(settings.database_dsn))


if __name__ == "__main__":
    main()
