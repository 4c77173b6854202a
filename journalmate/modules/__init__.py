"""
Planner modules for JournalMate.

- planning.py: PlanningModule, one call per user message
- planning_state.py: session, plan and transcript types
- planning_domains.py: domain table with per-field extraction rules
- planning_classifier.py: domain classification
- planning_parsing.py: stated-field extraction from the transcript
- planning_questions.py: question batching and progress
- planning_generator.py: plan generation (AI or template) and budgets
- planning_guard.py: grounding checks for AI plans
- planning_confirmation.py: affirm / reject / refine detection
- planning_materializer.py: confirmed plan to Activity, exactly once
"""
