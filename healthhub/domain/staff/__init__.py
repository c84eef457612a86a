"""Staff domain - Practice employees, roles and PIN sessions"""
