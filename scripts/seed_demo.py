#!/usr/bin/env python3
"""Seed LabBoard with a demo lab, its people, and a few postings.

Writes straight into the configured document store (LB_STORAGE, LB_DB_PATH,
LB_*_TABLE), so it works before any identity-provider users exist.  Re-running
is safe: documents are keyed by fixed ids and overwritten.

Sign-in subjects used below:
    prof-demo       Professor, primary owner of lab-demo
    prof-co         Professor, listed only in professorIds
    la-demo         LabAssistant on lab-demo
    student-demo    Student member of lab-demo
"""

import asyncio

from labboard.core.models import Job, Lab, User
from labboard.storage import create_store
from labboard.storage.base import Table

LAB_ID = "lab-demo"

USERS = [
    User(id="admin-demo", email="admin@example.edu", roles=["Admin"]),
    User(id="prof-demo", email="prof@example.edu", roles=["Professor"], labIds=[LAB_ID]),
    User(id="prof-co", email="coprof@example.edu", roles=["Professor"], labIds=[LAB_ID]),
    User(id="la-demo", email="assistant@example.edu", roles=["LabAssistant"], labIds=[LAB_ID]),
    User(id="student-demo", email="student@example.edu", roles=["Student"], labIds=[LAB_ID]),
]

LAB = Lab(
    id=LAB_ID,
    name="Computational Neuroscience Lab",
    professorId="prof-demo",
    professorIds=["prof-demo", "prof-co"],
    labAssistantIds=["la-demo"],
    description="Modeling cortical circuits with spiking networks and large-scale recordings.",
)

JOBS = [
    Job(
        id="job-open",
        title="Undergraduate Research Assistant: Spike Sorting",
        description=(
            "Help build and validate spike-sorting pipelines for high-density probe "
            "recordings. You will work with Python, NumPy and our cluster tooling, and "
            "present results at the weekly lab meeting."
        ),
        labId=LAB_ID,
        professorId="prof-demo",
        createdBy="prof-demo",
        status="OPEN",
        requirements=["Python", "Intro statistics", "10 hours/week"],
        academicLevel="undergraduate",
    ),
    Job(
        id="job-draft",
        title="Summer Fellow: Closed-loop Stimulation",
        description="Design real-time stimulation experiments.",
        labId=LAB_ID,
        professorId="prof-demo",
        createdBy="la-demo",
        status="DRAFT",
    ),
    Job(
        id="job-internal",
        title="Lab Manager (internal posting)",
        description="Coordinate equipment and animal protocols.",
        labId=LAB_ID,
        professorId="prof-co",
        createdBy="prof-co",
        status="OPEN",
        visibility="private",
    ),
]


async def main() -> None:
    store = create_store()
    await store.connect()
    try:
        print("═══ Phase 1: users ═══")
        for user in USERS:
            await store.put(Table.USERS, user.to_document())
            print(f"  {user.id:<14} {','.join(user.roles)}")

        print("═══ Phase 2: lab ═══")
        await store.put(Table.LABS, LAB.to_document())
        print(f"  {LAB.id}: {LAB.name}")

        print("═══ Phase 3: jobs ═══")
        for job in JOBS:
            await store.put(Table.JOBS, job.to_document())
            print(f"  {job.id:<14} {job.status:<6} {job.visibility:<8} {job.title}")
    finally:
        await store.close()
    print("Done.")


if __name__ == "__main__":
    asyncio.run(main())
