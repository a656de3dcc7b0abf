"""
StripBooth Backend — API Routes Package
========================================

Route Inventory:
    - health.py:            GET  /health
    - orders.py:            /api/orders (intake, list, patch, bulk update, delivery)
    - projects.py:          /api/projects (CRUD, photo attach, editor save)
    - design_templates.py:  /api/templates (standard frame catalog)
    - print_templates.py:   /api/print-templates (sheets, allocate, download, print)
    - template_slots.py:    /api/template-slots (slot reassignment, printed summary)
    - raffle.py:            /api/raffle-entries, /api/raffle/draw, /api/raffle-winners
    - uploads.py:           POST /api/uploads/project-image, GET|HEAD /uploads/{key}

Routes stay thin: parse the request, call one service, set headers.
List endpoints take the camelCase query names the booth frontend sends
(orderBy, orderDir, templateIds, orderIds).
"""
