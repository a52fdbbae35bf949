"""Notes domain - notes attached to cases, todos, repairs and purchase orders"""
