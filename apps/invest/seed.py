import logging
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invest.db import AsyncSessionLocal
from apps.invest.models.mapping import (
    FieldType,
    MappingTemplate,
    TargetField,
    TargetSystem,
    TemplateField,
)

logger = logging.getLogger(__name__)

INVOICE_SYSTEM = "Invoice Processing System"
CRM_SYSTEM = "Customer Relationship Management"
STANDARD_INVOICE_TEMPLATE = "Standard Invoice Template"

TARGET_SYSTEMS = [
    {
        "name": INVOICE_SYSTEM,
        "description": "Accounts payable system for supplier invoices",
        "fields": [
            {"name": "Invoice Number", "required": True, "type": FieldType.TEXT},
            {"name": "Invoice Date", "required": True, "type": FieldType.DATE},
            {"name": "Due Date", "required": False, "type": FieldType.DATE},
            {"name": "Vendor Name", "required": True, "type": FieldType.TEXT},
            {"name": "Vendor Address", "required": False, "type": FieldType.TEXT},
            {"name": "Total Amount", "required": True, "type": FieldType.NUMBER},
            {"name": "Tax Amount", "required": False, "type": FieldType.NUMBER},
            {
                "name": "Currency",
                "required": True,
                "type": FieldType.ENUM,
                "options": ["USD", "EUR", "GBP", "JPY", "CAD", "AUD"],
            },
            {
                "name": "Status",
                "required": False,
                "type": FieldType.ENUM,
                "options": ["Pending", "Paid", "Overdue", "Cancelled"],
            },
        ],
    },
    {
        "name": CRM_SYSTEM,
        "description": "Customer records",
        "fields": [
            {"name": "Customer ID", "required": True, "type": FieldType.TEXT},
            {"name": "First Name", "required": True, "type": FieldType.TEXT},
            {"name": "Last Name", "required": True, "type": FieldType.TEXT},
            {"name": "Email", "required": False, "type": FieldType.TEXT},
            {"name": "Phone", "required": False, "type": FieldType.TEXT},
            {"name": "Address", "required": False, "type": FieldType.TEXT},
            {
                "name": "Customer Type",
                "required": False,
                "type": FieldType.ENUM,
                "options": ["Individual", "Business", "Government", "Non-profit"],
            },
        ],
    },
]

# target field name -> extracted field name
STANDARD_INVOICE_FIELDS = {
    "Invoice Number": "Invoice Number",
    "Invoice Date": "Date",
    "Vendor Name": "Vendor",
    "Total Amount": "Total Amount",
}


async def _seed_target_system(session: AsyncSession, definition: dict) -> TargetSystem:
    result = await session.execute(select(TargetSystem).where(TargetSystem.name == definition["name"]))
    system = result.scalar_one_or_none()
    if system:
        return system

    system = TargetSystem(name=definition["name"], description=definition["description"])
    session.add(system)
    await session.flush()
    for position, field in enumerate(definition["fields"]):
        session.add(TargetField(
            target_system_id=system.id,
            name=field["name"],
            required=field["required"],
            type=field["type"],
            options=field.get("options", []),
            position=position,
        ))
    await session.flush()
    logger.info(f"Seeded target system '{system.name}'")
    return system


async def _seed_standard_template(session: AsyncSession, invoice_system: TargetSystem):
    result = await session.execute(
        select(MappingTemplate).where(
            MappingTemplate.name == STANDARD_INVOICE_TEMPLATE,
            MappingTemplate.user_id.is_(None),
        )
    )
    if result.scalar_one_or_none():
        return

    template = MappingTemplate(
        name=STANDARD_INVOICE_TEMPLATE,
        description="Standard mapping for invoice documents",
        target_system_id=invoice_system.id,
        user_id=None,
    )
    session.add(template)
    await session.flush()

    field_result = await session.execute(
        select(TargetField).where(TargetField.target_system_id == invoice_system.id)
    )
    target_fields = {field.name: field for field in field_result.scalars().all()}
    for target_name, extracted_name in STANDARD_INVOICE_FIELDS.items():
        session.add(TemplateField(
            template_id=template.id,
            target_field_id=target_fields[target_name].id,
            extracted_field_name=extracted_name,
        ))
    logger.info(f"Seeded mapping template '{template.name}'")


async def seed_reference_data(session: AsyncSession):
    """Create the built-in target systems and system templates. Safe to run repeatedly."""
    systems = {}
    for definition in TARGET_SYSTEMS:
        systems[definition["name"]] = await _seed_target_system(session, definition)
    await _seed_standard_template(session, systems[INVOICE_SYSTEM])
    await session.commit()


async def setup_reference_data():
    async with AsyncSessionLocal() as session:
        await seed_reference_data(session)
